from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.models import LEAD_STATUSES, Lead, Property, PropertyView, User


DATE_RANGES = {"7d": 7, "30d": 30, "90d": 90, "all": None}
RECENT_LEAD_DAYS = 7
TOP_PROPERTIES = 10


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


@dataclass
class DashboardStats:
    total_properties: int = 0
    active_properties: int = 0
    total_leads: int = 0
    new_leads: int = 0
    total_users: int = 0
    total_views: int = 0
    recent_leads: int = 0
    conversions: int = 0

    def to_dict(self) -> dict[str, int]:
        return {_camel(k): v for k, v in asdict(self).items()}


def _count(db: Session, stmt) -> int:
    return int(db.scalar(stmt) or 0)


def compute_dashboard_stats(db: Session, *, now: dt.datetime | None = None) -> DashboardStats:
    """
    Each figure is its own aggregate read; they are not taken from a single
    snapshot, so concurrent writes can make them disagree slightly.
    """
    now = now or dt.datetime.now(dt.timezone.utc)
    recent_since = now - dt.timedelta(days=RECENT_LEAD_DAYS)
    return DashboardStats(
        total_properties=_count(db, select(func.count(Property.id))),
        active_properties=_count(db, select(func.count(Property.id)).where(Property.status == "Active")),
        total_leads=_count(db, select(func.count(Lead.id))),
        new_leads=_count(db, select(func.count(Lead.id)).where(Lead.status == "New")),
        total_users=_count(db, select(func.count(User.id))),
        total_views=_count(db, select(func.coalesce(func.sum(Property.views), 0))),
        recent_leads=_count(db, select(func.count(Lead.id)).where(Lead.created_at >= recent_since)),
        conversions=_count(db, select(func.count(Lead.id)).where(Lead.status == "Converted")),
    )


def _range_start(date_range: str, now: dt.datetime) -> dt.datetime | None:
    days = DATE_RANGES.get(date_range, DATE_RANGES["30d"])
    return None if days is None else now - dt.timedelta(days=days)


def _per_day(db: Session, column, since: dt.datetime | None) -> list[dict[str, Any]]:
    day = func.date(column)
    stmt = select(day, func.count()).group_by(day).order_by(day)
    if since is not None:
        stmt = stmt.where(column >= since)
    return [{"date": str(d), "count": int(c or 0)} for d, c in db.execute(stmt).all()]


def compute_analytics(db: Session, date_range: str = "30d", *, now: dt.datetime | None = None) -> dict[str, Any]:
    now = now or dt.datetime.now(dt.timezone.utc)
    if date_range not in DATE_RANGES:
        date_range = "30d"
    since = _range_start(date_range, now)

    views_trend = _per_day(db, PropertyView.viewed_at, since)
    leads_trend = _per_day(db, Lead.created_at, since)

    status_stmt = select(Lead.status, func.count()).group_by(Lead.status)
    if since is not None:
        status_stmt = status_stmt.where(Lead.created_at >= since)
    by_status = {s: int(c or 0) for s, c in db.execute(status_stmt).all()}
    breakdown = [{"status": s, "count": by_status.get(s, 0)} for s in LEAD_STATUSES]

    top = db.execute(
        select(Property).order_by(Property.views.desc(), Property.id.asc()).limit(TOP_PROPERTIES)
    ).scalars().all()
    top_ids = [p.id for p in top]
    inquiries: dict[str, int] = {}
    conversions: dict[str, int] = {}
    if top_ids:
        rows = db.execute(
            select(Lead.property_id, Lead.status, func.count())
            .where(Lead.property_id.in_(top_ids))
            .group_by(Lead.property_id, Lead.status)
        ).all()
        for pid, status, cnt in rows:
            inquiries[pid] = inquiries.get(pid, 0) + int(cnt or 0)
            if status == "Converted":
                conversions[pid] = conversions.get(pid, 0) + int(cnt or 0)
    top_properties = [
        {
            "id": p.id,
            "title": p.title,
            "views": int(p.views or 0),
            "inquiries": inquiries.get(p.id, 0),
            "conversions": conversions.get(p.id, 0),
        }
        for p in top
    ]

    city = Property.payload[("location", "city")].as_string().label("city")
    n = func.count(Property.id).label("n")
    loc_rows = db.execute(
        select(city, n).where(Property.status == "Active").group_by(city).order_by(n.desc(), city.asc())
    ).all()
    location_stats = [{"city": c, "count": int(cnt or 0)} for c, cnt in loc_rows if c]

    return {
        "dateRange": date_range,
        "viewsTrend": views_trend,
        "leadsTrend": leads_trend,
        "leadStatusBreakdown": breakdown,
        "topProperties": top_properties,
        "locationStats": location_stats,
    }
