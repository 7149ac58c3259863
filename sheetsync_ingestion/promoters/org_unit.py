"""
Organisation-unit target: hierarchy payloads -> OrganisationUnit rows.

Each create/update runs inside a SAVEPOINT so a failed node rolls back alone
and the rest of the run continues on the same session.
"""

from __future__ import annotations

from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from sheetsync_config.schema import DEFAULT_OPENING_DATE
from sheetsync_kernel.models.org_unit import OrganisationUnit

_FILTERABLE = frozenset({"code", "name", "short_name", "level", "parent_id"})


def _str(d: dict[str, Any], key: str, default: str = "") -> str:
    v = d.get(key)
    return str(v).strip() if v is not None else default


def _opening_date(d: dict[str, Any]) -> date:
    v = d.get("opening_date")
    if v is None or v == "":
        return DEFAULT_OPENING_DATE
    if isinstance(v, date):
        return v
    return date.fromisoformat(str(v)[:10])


def _parent_id(d: dict[str, Any]) -> UUID | None:
    v = d.get("parent_id")
    if v is None or v == "":
        return None
    if isinstance(v, UUID):
        return v
    return UUID(str(v))


def org_unit_to_dict(unit: OrganisationUnit) -> dict[str, Any]:
    return {
        "id": str(unit.id),
        "code": unit.code,
        "name": unit.name,
        "short_name": unit.short_name,
        "level": unit.level,
        "opening_date": unit.opening_date.isoformat(),
        "parent_id": str(unit.parent_id) if unit.parent_id else None,
    }


class SqlOrgUnitTarget:
    """UpsertTarget over the organisation_units table."""

    def __init__(self, session: Session):
        self._session = session

    def find(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        unknown = set(filters) - _FILTERABLE
        if unknown:
            raise ValueError(f"Unsupported filter fields: {sorted(unknown)}")
        stmt = select(OrganisationUnit)
        for field_name, value in filters.items():
            if field_name == "parent_id" and value is not None:
                value = UUID(str(value))
            stmt = stmt.where(getattr(OrganisationUnit, field_name) == value)
        return [org_unit_to_dict(u) for u in self._session.scalars(stmt.order_by(OrganisationUnit.code))]

    def create(self, payload: dict[str, Any]) -> str:
        name = _str(payload, "name")
        unit = OrganisationUnit(
            code=_str(payload, "code"),
            name=name,
            short_name=_str(payload, "short_name") or name[:50],
            level=int(payload.get("level") or 1),
            opening_date=_opening_date(payload),
            parent_id=_parent_id(payload),
        )
        with self._session.begin_nested():
            self._session.add(unit)
            self._session.flush()
        return str(unit.id)

    def update(self, remote_id: str, payload: dict[str, Any]) -> str:
        with self._session.begin_nested():
            unit = self._session.get(OrganisationUnit, UUID(str(remote_id)))
            if unit is None:
                raise LookupError(f"OrganisationUnit not found: {remote_id}")
            name = _str(payload, "name")
            unit.name = name
            unit.short_name = _str(payload, "short_name") or name[:50]
            if payload.get("level") is not None:
                unit.level = int(payload["level"])
            unit.opening_date = _opening_date(payload)
            unit.parent_id = _parent_id(payload)
            self._session.flush()
        return str(unit.id)
