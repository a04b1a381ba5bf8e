from __future__ import annotations

import csv
import io
from typing import Iterable

from app.models import LEAD_STATUSES, Lead


TERMINAL_STATUSES = frozenset({"Converted", "Lost"})
_ORDER = {s: i for i, s in enumerate(("New", "Contacted", "Qualified", "Converted"))}


class LeadTransitionError(ValueError):
    pass


def check_transition(current: str, new: str) -> None:
    """
    Leads only move forward: New -> Contacted -> Qualified -> Converted.
    Skipping ahead is fine. Lost is reachable from any open status.
    Converted and Lost are final.
    """
    if new not in LEAD_STATUSES:
        raise LeadTransitionError(f"Status must be one of: {', '.join(LEAD_STATUSES)}")
    if current == new:
        return
    if current in TERMINAL_STATUSES:
        raise LeadTransitionError(f"Lead is already {current}")
    if new == "Lost":
        return
    if _ORDER.get(new, -1) < _ORDER.get(current, -1):
        raise LeadTransitionError(f"Cannot move lead from {current} back to {new}")


CSV_COLUMNS = ("id", "name", "email", "phone", "message", "status", "property_id", "property_title", "created_at")


def leads_to_csv(rows: Iterable[tuple[Lead, str | None]]) -> str:
    """rows: (lead, property title or None)."""
    buf = io.StringIO()
    w = csv.writer(buf)
    w.writerow(CSV_COLUMNS)
    for lead, title in rows:
        w.writerow(
            [
                lead.id,
                lead.name,
                lead.email,
                lead.phone,
                lead.message or "",
                lead.status,
                lead.property_id or "",
                title or "",
                lead.created_at.isoformat() if lead.created_at else "",
            ]
        )
    return buf.getvalue()
