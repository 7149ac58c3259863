"""
Module: sheetsync_kernel.models.org_unit
Responsibility: ORM persistence for organisation units -- the reference target
    that hierarchy upserts write into.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - parent_id, when set, references another OrganisationUnit.
    - code is NOT unique at the database level: upstream systems can contain
      duplicate codes, and the upsert path must detect and report that as a
      conflict instead of the database hiding it.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from sheetsync_kernel.db.base import TrackedBase, UUIDString


class OrganisationUnit(TrackedBase):
    """
    A single node of the organisation-unit tree (region, zone, district, site...).

    Contract:
        Looked up by ``code`` during upsert.  ``level`` is 1 for roots and
        grows by one per generation.
    """

    __tablename__ = "organisation_units"

    __table_args__ = (
        Index("idx_org_unit_code", "code"),
        Index("idx_org_unit_parent", "parent_id"),
    )

    code: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(
        String(230),
        nullable=False,
    )

    short_name: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
    )

    level: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
    )

    opening_date: Mapped[date] = mapped_column(
        nullable=False,
    )

    parent_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("organisation_units.id"),
        nullable=True,
    )

    parent: Mapped["OrganisationUnit | None"] = relationship(
        remote_side="OrganisationUnit.id",
        back_populates="children",
    )

    children: Mapped[list["OrganisationUnit"]] = relationship(
        back_populates="parent",
    )

    def __repr__(self) -> str:
        return f"<OrganisationUnit {self.code}: {self.name}>"
