from __future__ import annotations

import datetime as dt
import logging
import re
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.middleware.trustedhost import TrustedHostMiddleware

from app.config import (
    admin_seed_email,
    admin_seed_name,
    admin_seed_password,
    allowed_hosts,
    auth_rate_limit,
    cors_origins,
    enforce_secure_secrets,
    is_sqlite,
    lead_rate_limit,
    log_level,
    whatsapp_number,
)
from app.dashboard import compute_analytics, compute_dashboard_stats
from app.db import init_db, session_scope
from app.deps import DB, AdminUser, CurrentUser, OptionalUser
from app.leads import LeadTransitionError, check_transition, leads_to_csv
from app.models import (
    LEAD_STATUSES,
    PROPERTY_STATUSES,
    USER_ROLES,
    Amenity,
    Lead,
    Property,
    PropertyDraft,
    PropertyView,
    Review,
    Setting,
    User,
    WishlistItem,
)
from app.payload import PayloadError, parse_payload
from app.rate_limit import client_key, limiter
from app.search import SearchFilters, paginate, search_properties
from app.security import create_access_token, hash_password, verify_password


logging.basicConfig(level=log_level(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Covenant Realty API")

# Production hardening: ensure we don't run with dangerous defaults.
enforce_secure_secrets()

app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts())


@app.middleware("http")
async def _security_headers(request, call_next):
    resp = await call_next(request)
    resp.headers.setdefault("X-Content-Type-Options", "nosniff")
    resp.headers.setdefault("X-Frame-Options", "DENY")
    resp.headers.setdefault("Referrer-Policy", "no-referrer")
    resp.headers.setdefault("Permissions-Policy", "geolocation=(), microphone=(), camera=()")
    return resp


app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def _unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


AUTH_WINDOW_SECONDS = 15 * 60
LEAD_WINDOW_SECONDS = 60 * 60

DEFAULT_AMENITIES = (
    ("Lift", "Common"),
    ("Vaastu Compliant", "Common"),
    ("Security Personnel", "Common"),
    ("Power Backup", "Common"),
    ("Parking", "Common"),
    ("Gym", "Common"),
    ("Club House", "Common"),
    ("Park", "Common"),
    ("Swimming Pool", "Common"),
    ("Gas Pipeline", "Common"),
    ("Fire Hydrant", "Common"),
    ("Fire Sprinkler", "Common"),
    ("Fire NOC", "Common"),
    ("AC Room", "Residential"),
    ("Pet Friendly", "Residential"),
    ("Wheelchair Friendly", "Residential"),
    ("Wi-Fi", "Residential"),
    ("Laundry Available", "Residential"),
    ("Food Service", "Residential"),
    ("Near Bank", "Commercial"),
    ("ATM", "Commercial"),
    ("Waste Disposal", "Commercial"),
    ("DG Availability", "Commercial"),
    ("Wheelchair Access", "Commercial"),
)

PUBLIC_SETTINGS = {"logo": "", "companyName": "Covenant Realty"}

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _iso(v: dt.datetime | None) -> str:
    return v.isoformat() if v else ""


def seed_default_amenities(db: Session) -> int:
    if db.scalar(select(func.count(Amenity.id))):
        return 0
    for name, category in DEFAULT_AMENITIES:
        db.add(Amenity(name=name, category=category))
    return len(DEFAULT_AMENITIES)


def seed_admin_from_env(db: Session) -> bool:
    """
    Create the admin account named by ADMIN_EMAIL / ADMIN_PASSWORD if it is
    missing. An existing account is left untouched.
    """
    email = admin_seed_email()
    password = admin_seed_password()
    if not email or not password:
        return False
    if db.execute(select(User).where(User.email == email)).scalar_one_or_none():
        return False
    db.add(
        User(
            name=admin_seed_name(),
            email=email,
            role="admin",
            password_hash=hash_password(password),
        )
    )
    return True


@app.on_event("startup")
def _startup() -> None:
    if is_sqlite():
        init_db()
    try:
        with session_scope() as db:
            if seed_admin_from_env(db):
                logger.info("Seeded admin account %s", admin_seed_email())
            n = seed_default_amenities(db)
            if n:
                logger.info("Seeded %d default amenities", n)
    except SQLAlchemyError:
        # Schema not migrated yet; seeding happens on the next start.
        logger.warning("Startup seeding skipped: database not ready", exc_info=True)


# -----------------------
# Output helpers
# -----------------------
def _user_out(u: User) -> dict[str, Any]:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "phone": u.phone,
        "role": u.role,
        "isActive": bool(u.is_active),
        "emailVerified": bool(u.email_verified),
        "createdAt": _iso(u.created_at),
    }


def _property_out(p: Property) -> dict[str, Any]:
    return {
        "id": p.id,
        "title": p.title,
        "status": p.status,
        "views": int(p.views or 0),
        "payload": dict(p.payload or {}),
        "createdAt": _iso(p.created_at),
        "updatedAt": _iso(p.updated_at),
    }


def _lead_out(lead: Lead, property_title: str | None = None) -> dict[str, Any]:
    return {
        "id": lead.id,
        "userId": lead.user_id,
        "propertyId": lead.property_id,
        "propertyTitle": property_title,
        "name": lead.name,
        "email": lead.email,
        "phone": lead.phone,
        "message": lead.message,
        "status": lead.status,
        "createdAt": _iso(lead.created_at),
        "updatedAt": _iso(lead.updated_at),
    }


def _review_out(r: Review) -> dict[str, Any]:
    return {
        "id": r.id,
        "propertyId": r.property_id,
        "userId": r.user_id,
        "userName": r.user_name,
        "rating": r.rating,
        "comment": r.comment,
        "isApproved": bool(r.is_approved),
        "createdAt": _iso(r.created_at),
    }


def _amenity_out(a: Amenity) -> dict[str, Any]:
    return {"id": a.id, "name": a.name, "category": a.category}


def _draft_out(d: PropertyDraft) -> dict[str, Any]:
    return {
        "id": d.id,
        "title": d.title,
        "payload": dict(d.payload or {}),
        "createdAt": _iso(d.created_at),
        "updatedAt": _iso(d.updated_at),
    }


def _pagination(page: int, limit: int, total: int) -> dict[str, int]:
    return {"page": page, "limit": limit, "total": total, "pages": -(-total // limit)}


# -----------------------
# Schemas
# -----------------------
class _In(BaseModel):
    # Accept both `propertyId` and `property_id`.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RegisterIn(_In):
    name: str
    email: str
    password: str
    phone: str | None = None


class LoginIn(_In):
    email: str
    password: str


class ProfileUpdateIn(_In):
    name: str | None = None
    phone: str | None = None


class PasswordChangeIn(_In):
    current_password: str
    new_password: str


class PropertyCreateIn(_In):
    title: str
    payload: Any
    status: str = "Active"


class PropertyUpdateIn(_In):
    title: str | None = None
    payload: Any = None
    status: str | None = None


class WishlistAddIn(_In):
    property_id: str


class LeadCreateIn(_In):
    name: str
    email: str
    phone: str
    property_id: str | None = None
    message: str | None = Field(default=None, max_length=1000)


class LeadStatusIn(_In):
    status: str


class UserStatusIn(_In):
    is_active: bool


class UserRoleIn(_In):
    role: str


class ReviewIn(_In):
    property_id: str
    rating: int = Field(ge=1, le=5)
    comment: str | None = Field(default=None, max_length=2000)


class AmenityIn(_In):
    name: str
    category: str | None = None


class DraftIn(_In):
    title: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


# -----------------------
# Validation helpers
# -----------------------
def _clean_email(email: str) -> str:
    e = (email or "").strip().lower()
    if not _EMAIL_RE.match(e):
        raise HTTPException(status_code=400, detail="Invalid email")
    return e


def _clean_name(name: str) -> str:
    n = (name or "").strip()
    if not 2 <= len(n) <= 100:
        raise HTTPException(status_code=400, detail="Name must be 2-100 characters")
    return n


def _check_password_strength(password: str) -> None:
    p = password or ""
    if len(p) < 8:
        raise HTTPException(status_code=400, detail="Password must be at least 8 characters")
    if not (re.search(r"[a-z]", p) and re.search(r"[A-Z]", p) and re.search(r"\d", p)):
        raise HTTPException(
            status_code=400,
            detail="Password must contain an uppercase letter, a lowercase letter and a number",
        )


def _clean_title(title: str) -> str:
    t = (title or "").strip()
    if not 3 <= len(t) <= 200:
        raise HTTPException(status_code=400, detail="Title must be 3-200 characters")
    return t


def _payload_or_400(raw: Any) -> dict[str, Any]:
    try:
        return parse_payload(raw)
    except PayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _is_admin(u: User | None) -> bool:
    return bool(u) and (u.role or "").lower() == "admin"


def _visible_property(db: Session, property_id: str, me: User | None) -> Property:
    p = db.get(Property, property_id)
    if not p or (p.status != "Active" and not _is_admin(me)):
        raise HTTPException(status_code=404, detail="Property not found")
    return p


@app.get("/health")
def health():
    return {"ok": True}


# -----------------------
# Auth
# -----------------------
@app.post("/auth/register", status_code=201)
def register(data: RegisterIn, request: Request, db: DB):
    limiter.hit(
        key=client_key(request, "auth"),
        limit=auth_rate_limit(),
        window_seconds=AUTH_WINDOW_SECONDS,
        detail="Too many attempts, please try again later",
    )
    name = _clean_name(data.name)
    email = _clean_email(data.email)
    _check_password_strength(data.password)

    if db.execute(select(User).where(User.email == email)).scalar_one_or_none():
        raise HTTPException(status_code=409, detail="User already exists")

    user = User(
        name=name,
        email=email,
        phone=(data.phone or "").strip() or None,
        role="user",
        password_hash=hash_password(data.password),
    )
    db.add(user)
    try:
        db.flush()
    except IntegrityError:
        # Concurrent double-submit still hits the unique index.
        db.rollback()
        raise HTTPException(status_code=409, detail="User already exists")
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"token": token, "user": _user_out(user)}


@app.post("/auth/login")
def login(data: LoginIn, request: Request, db: DB):
    limiter.hit(
        key=client_key(request, "auth"),
        limit=auth_rate_limit(),
        window_seconds=AUTH_WINDOW_SECONDS,
        detail="Too many attempts, please try again later",
    )
    email = (data.email or "").strip().lower()
    user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
    # Same answer for unknown email and wrong password.
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is deactivated")
    token = create_access_token(user_id=user.id, email=user.email, role=user.role)
    return {"token": token, "user": _user_out(user)}


@app.get("/auth/profile")
def get_profile(me: CurrentUser):
    return {"user": _user_out(me)}


@app.put("/auth/profile")
def update_profile(data: ProfileUpdateIn, me: CurrentUser, db: DB):
    if data.name is not None:
        me.name = _clean_name(data.name)
    if data.phone is not None:
        me.phone = data.phone.strip() or None
    me.updated_at = _utcnow()
    db.add(me)
    return {"user": _user_out(me)}


@app.put("/auth/password")
def change_password(data: PasswordChangeIn, me: CurrentUser, db: DB):
    if not verify_password(data.current_password, me.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    _check_password_strength(data.new_password)
    me.password_hash = hash_password(data.new_password)
    me.updated_at = _utcnow()
    db.add(me)
    return {"ok": True}


@app.get("/auth/verify")
def verify_token(me: CurrentUser):
    return {"valid": True, "user": _user_out(me)}


# -----------------------
# Properties
# -----------------------
def _search_response(db: Session, filters: SearchFilters, page: Any, limit: Any, me: User | None) -> dict[str, Any]:
    result = search_properties(db, filters, page=page, limit=limit, allow_status_override=_is_admin(me))
    return {
        "properties": [_property_out(p) for p in result.properties],
        "pagination": result.pagination(),
    }


@app.get("/properties")
def list_properties(request: Request, db: DB, me: OptionalUser):
    qp = request.query_params
    filters = SearchFilters.from_query(qp)
    return _search_response(db, filters, qp.get("page", 1), qp.get("limit", 12), me)


@app.post("/properties/search")
def search_properties_post(db: DB, me: OptionalUser, data: dict[str, Any] | None = Body(default=None)):
    body = dict(data or {})
    page = body.pop("page", 1)
    limit = body.pop("limit", 12)
    # `{filters: {...}, page, limit}`; a flat body of filter keys is accepted too.
    nested = body.pop("filters", None)
    filters = SearchFilters.from_mapping(nested if isinstance(nested, dict) else body)
    return _search_response(db, filters, page, limit, me)


@app.get("/properties/{property_id}")
def get_property(property_id: str, db: DB, me: OptionalUser):
    p = _visible_property(db, property_id, me)
    p.views = int(p.views or 0) + 1
    db.add(PropertyView(property_id=p.id, user_id=me.id if me else None))
    db.flush()
    return {"property": _property_out(p)}


@app.get("/properties/{property_id}/similar")
def similar_properties(
    property_id: str,
    db: DB,
    me: OptionalUser,
    limit: int = Query(default=4, ge=1, le=20),
):
    p = _visible_property(db, property_id, me)
    payload = Property.payload
    city = (p.payload or {}).get("location", {}).get("city") or ""
    stmt = (
        select(Property)
        .where(
            Property.status == "Active",
            Property.id != p.id,
            payload["category"].as_string() == str((p.payload or {}).get("category") or ""),
            payload["purpose"].as_string() == str((p.payload or {}).get("purpose") or ""),
            func.lower(payload[("location", "city")].as_string()) == str(city).lower(),
        )
        .order_by(Property.views.desc(), Property.id.asc())
        .limit(limit)
    )
    rows = db.execute(stmt).scalars().all()
    return {"properties": [_property_out(x) for x in rows]}


@app.post("/properties", status_code=201)
def create_property(data: PropertyCreateIn, me: AdminUser, db: DB):
    if data.status not in PROPERTY_STATUSES:
        raise HTTPException(status_code=400, detail="Invalid status")
    p = Property(title=_clean_title(data.title), payload=_payload_or_400(data.payload), status=data.status)
    db.add(p)
    db.flush()
    logger.info("Property %s created by %s", p.id, me.email)
    return {"property": _property_out(p)}


@app.put("/properties/{property_id}")
def update_property(property_id: str, data: PropertyUpdateIn, me: AdminUser, db: DB):
    p = db.get(Property, property_id)
    if not p:
        raise HTTPException(status_code=404, detail="Property not found")
    if data.title is not None:
        p.title = _clean_title(data.title)
    if data.payload is not None:
        p.payload = _payload_or_400(data.payload)
    if data.status is not None:
        if data.status not in PROPERTY_STATUSES:
            raise HTTPException(status_code=400, detail="Invalid status")
        p.status = data.status
    p.updated_at = _utcnow()
    db.add(p)
    db.flush()
    logger.info("Property %s updated by %s", p.id, me.email)
    return {"property": _property_out(p)}


@app.delete("/properties/{property_id}")
def delete_property(property_id: str, me: AdminUser, db: DB):
    p = db.get(Property, property_id)
    if not p:
        raise HTTPException(status_code=404, detail="Property not found")
    # Wishlist, views and reviews cascade; leads keep their row with property_id nulled.
    db.delete(p)
    logger.info("Property %s deleted by %s", property_id, me.email)
    return {"ok": True}


# -----------------------
# Wishlist
# -----------------------
@app.get("/wishlist")
def list_wishlist(me: CurrentUser, db: DB):
    rows = db.execute(
        select(Property, WishlistItem.added_at)
        .join(WishlistItem, WishlistItem.property_id == Property.id)
        .where(WishlistItem.user_id == me.id, Property.status == "Active")
        .order_by(WishlistItem.added_at.desc(), WishlistItem.id.asc())
    ).all()
    items = []
    for p, added_at in rows:
        out = _property_out(p)
        out["addedAt"] = _iso(added_at)
        items.append(out)
    return {"properties": items}


@app.post("/wishlist", status_code=201)
def add_to_wishlist(data: WishlistAddIn, me: CurrentUser, db: DB):
    p = db.get(Property, data.property_id)
    if not p or p.status != "Active":
        raise HTTPException(status_code=404, detail="Property not found")
    exists = db.execute(
        select(WishlistItem).where(WishlistItem.user_id == me.id, WishlistItem.property_id == p.id)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="Property already in wishlist")
    db.add(WishlistItem(user_id=me.id, property_id=p.id))
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Property already in wishlist")
    return {"ok": True}


@app.delete("/wishlist/{property_id}")
def remove_from_wishlist(property_id: str, me: CurrentUser, db: DB):
    item = db.execute(
        select(WishlistItem).where(WishlistItem.user_id == me.id, WishlistItem.property_id == property_id)
    ).scalar_one_or_none()
    if not item:
        raise HTTPException(status_code=404, detail="Property not in wishlist")
    db.delete(item)
    return {"ok": True}


# -----------------------
# Leads
# -----------------------
@app.post("/leads", status_code=201)
def create_lead(data: LeadCreateIn, request: Request, db: DB, me: OptionalUser):
    limiter.hit(
        key=client_key(request, "leads"),
        limit=lead_rate_limit(),
        window_seconds=LEAD_WINDOW_SECONDS,
        detail="Too many inquiries, please try again later",
    )
    name = _clean_name(data.name)
    email = _clean_email(data.email)
    phone = (data.phone or "").strip()
    if len(phone) < 7:
        raise HTTPException(status_code=400, detail="Invalid phone number")

    title = None
    if data.property_id:
        p = db.get(Property, data.property_id)
        if not p:
            raise HTTPException(status_code=404, detail="Property not found")
        title = p.title

    lead = Lead(
        user_id=me.id if me else None,
        property_id=data.property_id or None,
        name=name,
        email=email,
        phone=phone,
        message=(data.message or "").strip() or None,
    )
    db.add(lead)
    db.flush()
    logger.info("Lead %s received for property %s", lead.id, lead.property_id or "-")
    return {"lead": _lead_out(lead, title), "whatsappNumber": whatsapp_number()}


def _lead_query(status: str | None, search: str | None):
    stmt = select(Lead, Property.title).outerjoin(Property, Property.id == Lead.property_id)
    if status:
        stmt = stmt.where(Lead.status == status)
    qq = (search or "").strip().lower()
    if qq:
        stmt = stmt.where(
            or_(
                func.lower(Lead.name).contains(qq, autoescape=True),
                func.lower(Lead.email).contains(qq, autoescape=True),
                func.lower(Lead.phone).contains(qq, autoescape=True),
            )
        )
    return stmt


@app.get("/leads")
def list_leads(
    me: AdminUser,
    db: DB,
    status: str | None = Query(default=None),
    search: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
):
    page_num, limit_num, offset = paginate(page or 1, limit or 12)
    stmt = _lead_query(status, search)
    total = int(db.scalar(select(func.count()).select_from(stmt.subquery())) or 0)
    rows = db.execute(
        stmt.order_by(Lead.created_at.desc(), Lead.id.asc()).limit(limit_num).offset(offset)
    ).all()
    return {
        "leads": [_lead_out(lead, title) for lead, title in rows],
        "pagination": _pagination(page_num, limit_num, total),
    }


@app.get("/leads/export/csv")
def export_leads_csv(me: AdminUser, db: DB, status: str | None = Query(default=None)):
    rows = db.execute(_lead_query(status, None).order_by(Lead.created_at.desc(), Lead.id.asc())).all()
    logger.info("Lead export (%d rows) by %s", len(rows), me.email)
    return Response(
        content=leads_to_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="leads.csv"'},
    )


@app.get("/leads/{lead_id}")
def get_lead(lead_id: str, me: AdminUser, db: DB):
    row = db.execute(_lead_query(None, None).where(Lead.id == lead_id)).first()
    if not row:
        raise HTTPException(status_code=404, detail="Lead not found")
    lead, title = row
    return {"lead": _lead_out(lead, title)}


@app.put("/leads/{lead_id}/status")
def update_lead_status(lead_id: str, data: LeadStatusIn, me: AdminUser, db: DB):
    lead = db.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    if data.status not in LEAD_STATUSES:
        raise HTTPException(status_code=400, detail=f"Status must be one of: {', '.join(LEAD_STATUSES)}")
    try:
        check_transition(lead.status, data.status)
    except LeadTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))
    previous = lead.status
    lead.status = data.status
    lead.updated_at = _utcnow()
    db.add(lead)
    logger.info("Lead %s: %s -> %s by %s", lead.id, previous, lead.status, me.email)
    return {"lead": _lead_out(lead)}


@app.delete("/leads/{lead_id}")
def delete_lead(lead_id: str, me: AdminUser, db: DB):
    lead = db.get(Lead, lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")
    db.delete(lead)
    logger.info("Lead %s deleted by %s", lead_id, me.email)
    return {"ok": True}


# -----------------------
# Admin
# -----------------------
@app.get("/admin/dashboard")
def admin_dashboard(me: AdminUser, db: DB):
    return compute_dashboard_stats(db).to_dict()


@app.get("/admin/analytics")
def admin_analytics(me: AdminUser, db: DB, date_range: str = Query(default="30d", alias="dateRange")):
    return compute_analytics(db, date_range)


@app.get("/admin/users")
def admin_list_users(
    me: AdminUser,
    db: DB,
    role: str | None = Query(default=None),
    search: str | None = Query(default=None),
    page: str | None = Query(default=None),
    limit: str | None = Query(default=None),
):
    page_num, limit_num, offset = paginate(page or 1, limit or 20)
    stmt = select(User)
    if role:
        stmt = stmt.where(User.role == role)
    qq = (search or "").strip().lower()
    if qq:
        stmt = stmt.where(
            or_(
                func.lower(User.name).contains(qq, autoescape=True),
                func.lower(User.email).contains(qq, autoescape=True),
            )
        )
    total = int(db.scalar(select(func.count()).select_from(stmt.subquery())) or 0)
    users = db.execute(
        stmt.order_by(User.created_at.desc(), User.id.asc()).limit(limit_num).offset(offset)
    ).scalars().all()
    return {"users": [_user_out(u) for u in users], "pagination": _pagination(page_num, limit_num, total)}


def _other_user(db: Session, user_id: str, me: User) -> User:
    u = db.get(User, user_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    if u.id == me.id:
        raise HTTPException(status_code=400, detail="You cannot change your own account here")
    return u


@app.put("/admin/users/{user_id}/status")
def admin_set_user_status(user_id: str, data: UserStatusIn, me: AdminUser, db: DB):
    u = _other_user(db, user_id, me)
    u.is_active = bool(data.is_active)
    u.updated_at = _utcnow()
    db.add(u)
    logger.info("User %s %s by %s", u.email, "activated" if u.is_active else "deactivated", me.email)
    return {"user": _user_out(u)}


@app.put("/admin/users/{user_id}/role")
def admin_set_user_role(user_id: str, data: UserRoleIn, me: AdminUser, db: DB):
    role = (data.role or "").strip().lower()
    if role not in USER_ROLES:
        raise HTTPException(status_code=400, detail="Role must be user or admin")
    u = _other_user(db, user_id, me)
    u.role = role
    u.updated_at = _utcnow()
    db.add(u)
    logger.info("User %s role set to %s by %s", u.email, role, me.email)
    return {"user": _user_out(u)}


def _settings_map(db: Session) -> dict[str, str]:
    return {s.key: s.value for s in db.execute(select(Setting)).scalars().all()}


@app.get("/admin/settings/public")
def public_settings(db: DB):
    stored = _settings_map(db)
    return {k: stored.get(k, default) for k, default in PUBLIC_SETTINGS.items()}


@app.get("/admin/settings")
def admin_get_settings(me: AdminUser, db: DB):
    return {**PUBLIC_SETTINGS, **_settings_map(db)}


@app.put("/admin/settings")
def admin_update_settings(me: AdminUser, db: DB, data: dict[str, Any] = Body(...)):
    existing = {s.key: s for s in db.execute(select(Setting)).scalars().all()}
    now = _utcnow()
    for key, value in data.items():
        key = str(key).strip()
        if not key:
            continue
        value = "" if value is None else str(value)
        row = existing.get(key)
        if row:
            row.value = value
            row.updated_at = now
        else:
            db.add(Setting(key=key, value=value, updated_at=now))
    db.flush()
    logger.info("Settings updated by %s: %s", me.email, ", ".join(sorted(data)))
    return {**PUBLIC_SETTINGS, **_settings_map(db)}


# -----------------------
# Reviews
# -----------------------
@app.post("/reviews", status_code=201)
def create_review(data: ReviewIn, me: CurrentUser, db: DB):
    p = db.get(Property, data.property_id)
    if not p or p.status != "Active":
        raise HTTPException(status_code=404, detail="Property not found")
    exists = db.execute(
        select(Review).where(Review.property_id == p.id, Review.user_id == me.id)
    ).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="You have already reviewed this property")
    r = Review(
        property_id=p.id,
        user_id=me.id,
        user_name=me.name,
        rating=int(data.rating),
        comment=(data.comment or "").strip() or None,
    )
    db.add(r)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="You have already reviewed this property")
    return {"review": _review_out(r)}


@app.get("/reviews")
def admin_list_reviews(me: AdminUser, db: DB, approved: bool | None = Query(default=None)):
    stmt = select(Review).order_by(Review.created_at.desc(), Review.id.asc())
    if approved is not None:
        stmt = stmt.where(Review.is_approved == approved)
    return {"reviews": [_review_out(r) for r in db.execute(stmt).scalars().all()]}


@app.get("/reviews/property/{property_id}")
def property_reviews(property_id: str, db: DB):
    reviews = db.execute(
        select(Review)
        .where(Review.property_id == property_id, Review.is_approved.is_(True))
        .order_by(Review.created_at.desc(), Review.id.asc())
    ).scalars().all()
    breakdown = {str(star): 0 for star in range(1, 6)}
    for r in reviews:
        breakdown[str(r.rating)] = breakdown.get(str(r.rating), 0) + 1
    total = len(reviews)
    average = round(sum(r.rating for r in reviews) / total, 1) if total else 0
    return {
        "reviews": [_review_out(r) for r in reviews],
        "averageRating": average,
        "totalReviews": total,
        "ratingBreakdown": breakdown,
    }


@app.put("/reviews/{review_id}/approve")
def approve_review(review_id: str, me: AdminUser, db: DB):
    r = db.get(Review, review_id)
    if not r:
        raise HTTPException(status_code=404, detail="Review not found")
    r.is_approved = True
    db.add(r)
    return {"review": _review_out(r)}


@app.delete("/reviews/{review_id}")
def delete_review(review_id: str, me: AdminUser, db: DB):
    r = db.get(Review, review_id)
    if not r:
        raise HTTPException(status_code=404, detail="Review not found")
    db.delete(r)
    return {"ok": True}


# -----------------------
# Amenities
# -----------------------
def _amenity_name_taken(db: Session, name: str, exclude_id: str | None = None) -> bool:
    stmt = select(Amenity.id).where(func.lower(Amenity.name) == name.lower())
    if exclude_id:
        stmt = stmt.where(Amenity.id != exclude_id)
    return db.execute(stmt).first() is not None


@app.get("/amenities")
def list_amenities(db: DB, category: str | None = Query(default=None)):
    stmt = select(Amenity).order_by(Amenity.category.asc(), Amenity.name.asc())
    if category:
        stmt = stmt.where(Amenity.category == category)
    return {"amenities": [_amenity_out(a) for a in db.execute(stmt).scalars().all()]}


@app.post("/amenities", status_code=201)
def create_amenity(data: AmenityIn, me: AdminUser, db: DB):
    name = (data.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Amenity name is required")
    if _amenity_name_taken(db, name):
        raise HTTPException(status_code=409, detail="Amenity already exists")
    a = Amenity(name=name, category=(data.category or "").strip() or None)
    db.add(a)
    db.flush()
    return {"amenity": _amenity_out(a)}


@app.put("/amenities/{amenity_id}")
def update_amenity(amenity_id: str, data: AmenityIn, me: AdminUser, db: DB):
    a = db.get(Amenity, amenity_id)
    if not a:
        raise HTTPException(status_code=404, detail="Amenity not found")
    name = (data.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Amenity name is required")
    if _amenity_name_taken(db, name, exclude_id=a.id):
        raise HTTPException(status_code=409, detail="Amenity already exists")
    a.name = name
    a.category = (data.category or "").strip() or None
    a.updated_at = _utcnow()
    db.add(a)
    return {"amenity": _amenity_out(a)}


@app.delete("/amenities/{amenity_id}")
def delete_amenity(amenity_id: str, me: AdminUser, db: DB):
    a = db.get(Amenity, amenity_id)
    if not a:
        raise HTTPException(status_code=404, detail="Amenity not found")
    db.delete(a)
    return {"ok": True}


# -----------------------
# Locations
# -----------------------
MAX_LOCATION_SUGGESTIONS = 10


@app.get("/locations")
def location_suggestions(db: DB, query: str = Query(default="")):
    qq = (query or "").strip().lower()
    if len(qq) < 2:
        return {"locations": []}
    found: set[str] = set()
    for key in ("city", "locality"):
        col = Property.payload[("location", key)].as_string()
        rows = db.execute(
            select(col)
            .where(Property.status == "Active", func.lower(col).contains(qq, autoescape=True))
            .distinct()
        ).scalars().all()
        found.update(v for v in rows if v)
    return {"locations": sorted(found, key=str.lower)[:MAX_LOCATION_SUGGESTIONS]}


# -----------------------
# Drafts
# -----------------------
def _my_draft(db: Session, draft_id: str, me: User) -> PropertyDraft:
    d = db.get(PropertyDraft, draft_id)
    if not d or d.user_id != me.id:
        raise HTTPException(status_code=404, detail="Draft not found")
    return d


@app.get("/drafts")
def list_drafts(me: CurrentUser, db: DB):
    rows = db.execute(
        select(PropertyDraft)
        .where(PropertyDraft.user_id == me.id)
        .order_by(PropertyDraft.updated_at.desc(), PropertyDraft.id.asc())
    ).scalars().all()
    return {"drafts": [_draft_out(d) for d in rows]}


@app.get("/drafts/{draft_id}")
def get_draft(draft_id: str, me: CurrentUser, db: DB):
    return {"draft": _draft_out(_my_draft(db, draft_id, me))}


@app.post("/drafts", status_code=201)
def create_draft(data: DraftIn, me: CurrentUser, db: DB):
    d = PropertyDraft(user_id=me.id, title=(data.title or "").strip() or None, payload=data.payload)
    db.add(d)
    db.flush()
    return {"draft": _draft_out(d)}


@app.put("/drafts/{draft_id}")
def update_draft(draft_id: str, data: DraftIn, me: CurrentUser, db: DB):
    d = _my_draft(db, draft_id, me)
    d.title = (data.title or "").strip() or None
    d.payload = data.payload
    d.updated_at = _utcnow()
    db.add(d)
    return {"draft": _draft_out(d)}


@app.delete("/drafts/{draft_id}")
def delete_draft(draft_id: str, me: CurrentUser, db: DB):
    db.delete(_my_draft(db, draft_id, me))
    return {"ok": True}
