"""
Property search: turns a flat SearchFilters record into a filtered, sorted,
paginated SQL query over `properties`.

Filter values arrive untyped (query string or JSON body). Nothing is
validated up front: a value that cannot be read for its field narrows the
result to nothing instead of raising.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from sqlalchemy import Select, and_, false, func, or_, select
from sqlalchemy.orm import Session

from app.models import Property


DEFAULT_PAGE_SIZE = 12
MAX_PAGE_SIZE = 100

SORT_OPTIONS = ("newest", "price_asc", "price_desc", "views")

# payload key -> filter key is identity for these.
EXACT_TEXT_FIELDS = (
    "category",
    "purpose",
    "subtype",
    "bhk",
    "furnishing",
    "availableFrom",
    "constructionStatus",
    "possessionStatus",
    "powerCapacity",
    "floorPreference",
    "locatedOn",
    "officeSpread",
    "situatedIn",
    "ageOfProperty",
    "facing",
    "parking",
)
EXACT_NUMBER_FIELDS = ("bathrooms", "cabins", "washrooms")
BOOLEAN_FIELDS = ("meetingRooms", "pantry", "conferenceRoom", "reraApproved")
LOCATION_FIELDS = ("city", "state", "locality")
# Any-overlap, case-insensitive.
SET_FIELDS = ("amenities", "availableFor", "businessType", "investmentType")
# filter key -> (payload key, operator)
RANGE_FIELDS = {
    "minPrice": ("price", ">="),
    "maxPrice": ("price", "<="),
    "minArea": ("area", ">="),
    "maxArea": ("area", "<="),
}

FILTER_KEYS: tuple[str, ...] = (
    ("search",)
    + EXACT_TEXT_FIELDS
    + EXACT_NUMBER_FIELDS
    + BOOLEAN_FIELDS
    + LOCATION_FIELDS
    + SET_FIELDS
    + tuple(RANGE_FIELDS)
    + ("sortBy",)
)


def _is_absent(v: Any) -> bool:
    if v is None:
        return True
    if isinstance(v, str) and not v.strip():
        return True
    if isinstance(v, (list, tuple)) and not any(not _is_absent(x) for x in v):
        return True
    return False


def _split_csv_values(values: Iterable[Any]) -> list[str]:
    """
    Flatten repeated and comma-separated values into a clean list.
    Used for multi-select filters (e.g. amenities=Gym,Lift&amenities=Park).
    """
    out: list[str] = []
    for v in values:
        for part in str(v).split(","):
            part = part.strip()
            if part:
                out.append(part)
    return out


def _as_number(v: Any) -> float | None:
    if isinstance(v, bool):
        return None
    try:
        n = float(v)
    except (TypeError, ValueError):
        return None
    if math.isnan(n) or math.isinf(n):
        return None
    return n


def _as_bool(v: Any) -> bool | None:
    if isinstance(v, bool):
        return v
    s = str(v).strip().lower()
    if s == "true":
        return True
    if s == "false":
        return False
    return None


@dataclass
class SearchFilters:
    """
    Present keys only. Absence means "no constraint"; there are no sentinels.
    """

    values: dict[str, Any] = field(default_factory=dict)
    status: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> "SearchFilters":
        values: dict[str, Any] = {}
        status = None
        for key, raw in (data or {}).items():
            if key == "status":
                status = None if _is_absent(raw) else str(raw).strip()
                continue
            if key not in FILTER_KEYS or _is_absent(raw):
                continue
            if key in SET_FIELDS:
                items = raw if isinstance(raw, (list, tuple)) else [raw]
                values[key] = _split_csv_values(items)
            elif isinstance(raw, str):
                values[key] = raw.strip()
            else:
                values[key] = raw
        return cls(values=values, status=status)

    @classmethod
    def from_query(cls, params: Any) -> "SearchFilters":
        """
        Accepts a starlette `QueryParams` (or any multi-dict with `getlist`).
        """
        data: dict[str, Any] = {}
        for key in set(params.keys()):
            vals = params.getlist(key)
            data[key] = vals if key in SET_FIELDS else vals[-1]
        return cls.from_mapping(data)

    @property
    def sort_by(self) -> str:
        s = str(self.values.get("sortBy") or "newest")
        return s if s in SORT_OPTIONS else "newest"

    def get(self, key: str) -> Any:
        return self.values.get(key)


def _payload_criteria(filters: SearchFilters) -> list[Any]:
    crit: list[Any] = []
    payload = Property.payload

    for key in EXACT_TEXT_FIELDS:
        v = filters.get(key)
        if v is not None:
            crit.append(payload[key].as_string() == str(v))

    for key in EXACT_NUMBER_FIELDS:
        v = filters.get(key)
        if v is None:
            continue
        n = _as_number(v)
        crit.append(false() if n is None else payload[key].as_float() == n)

    for key in BOOLEAN_FIELDS:
        v = filters.get(key)
        if v is None:
            continue
        b = _as_bool(v)
        crit.append(false() if b is None else payload[key].as_boolean() == b)

    for key in LOCATION_FIELDS:
        v = filters.get(key)
        if v is not None:
            crit.append(func.lower(payload[("location", key)].as_string()) == str(v).lower())

    for key, (target, op) in RANGE_FIELDS.items():
        v = filters.get(key)
        if v is None:
            continue
        n = _as_number(v)
        if n is None:
            crit.append(false())
        elif op == ">=":
            crit.append(payload[target].as_float() >= n)
        else:
            crit.append(payload[target].as_float() <= n)

    for key in SET_FIELDS:
        wanted = filters.get(key)
        if wanted:
            crit.append(_any_overlap(key, [str(w).lower() for w in wanted]))

    q = filters.get("search")
    if q is not None:
        needle = str(q).lower()
        crit.append(
            or_(
                func.lower(Property.title).contains(needle, autoescape=True),
                func.lower(payload["description"].as_string()).contains(needle, autoescape=True),
                func.lower(payload[("location", "city")].as_string()).contains(needle, autoescape=True),
            )
        )
    return crit


def _any_overlap(key: str, wanted_lower: list[str]):
    # json_each yields one row per array element, or a single row when the
    # stored value is a scalar; a missing key yields no rows.
    elems = func.json_each(Property.payload, f"$.{key}").table_valued("value")
    return select(elems.c.value).where(func.lower(elems.c.value).in_(wanted_lower)).exists()


def _order_by(sort_by: str) -> list[Any]:
    if sort_by == "price_asc":
        return [Property.payload["price"].as_float().asc(), Property.id.asc()]
    if sort_by == "price_desc":
        return [Property.payload["price"].as_float().desc(), Property.id.asc()]
    if sort_by == "views":
        return [Property.views.desc(), Property.id.asc()]
    return [Property.created_at.desc(), Property.id.asc()]


def build_search_query(filters: SearchFilters, *, status: str = "Active") -> Select:
    """
    SELECT over properties with every present filter applied, ordered by
    `filters.sort_by` with an ascending-id tie-break.
    """
    crit = [Property.status == status]
    crit.extend(_payload_criteria(filters))
    return select(Property).where(and_(*crit)).order_by(*_order_by(filters.sort_by))


def paginate(page: Any = 1, limit: Any = DEFAULT_PAGE_SIZE) -> tuple[int, int, int]:
    """
    Returns (page, limit, offset). Garbage input falls back to defaults;
    limit is clamped to 1..MAX_PAGE_SIZE.
    """
    try:
        page_num = int(page)
    except (TypeError, ValueError):
        page_num = 1
    try:
        limit_num = int(limit)
    except (TypeError, ValueError):
        limit_num = DEFAULT_PAGE_SIZE
    page_num = max(1, page_num)
    limit_num = max(1, min(MAX_PAGE_SIZE, limit_num))
    return page_num, limit_num, (page_num - 1) * limit_num


@dataclass
class SearchResult:
    properties: list[Property]
    page: int
    limit: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    def pagination(self) -> dict[str, int]:
        return {"page": self.page, "limit": self.limit, "total": self.total, "pages": self.pages}


def search_properties(
    db: Session,
    filters: SearchFilters,
    *,
    page: Any = 1,
    limit: Any = DEFAULT_PAGE_SIZE,
    allow_status_override: bool = False,
) -> SearchResult:
    """
    Only Active listings are eligible unless `allow_status_override` is set
    (admin callers) and the filters carry an explicit status.
    """
    status = "Active"
    if allow_status_override and filters.status:
        status = filters.status

    page_num, limit_num, offset = paginate(page, limit)
    stmt = build_search_query(filters, status=status)

    total = int(db.scalar(select(func.count()).select_from(stmt.order_by(None).subquery())) or 0)
    rows = db.execute(stmt.limit(limit_num).offset(offset)).scalars().all()
    return SearchResult(properties=list(rows), page=page_num, limit=limit_num, total=total)
