"""ORM models for the reference hierarchy target."""

from sheetsync_kernel.models.org_unit import OrganisationUnit

__all__ = ["OrganisationUnit"]
