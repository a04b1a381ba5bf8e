"""
PropertyPayload: the semi-structured attribute bag stored on each property.

The wire/storage form uses camelCase keys (`areaUnit`, `reraApproved`, ...);
attributes are snake_case on the Python side. Optional fields that were not
provided are omitted from the stored JSON rather than written as null.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel


CATEGORIES = ("Residential", "Commercial")
PURPOSES = ("Buy", "Rent", "Lease")
AREA_UNITS = ("sq.ft", "sq.yd", "sq.m", "acres", "marla", "cents")
FURNISHING = ("Furnished", "Semi-Furnished", "Unfurnished")
CONSTRUCTION_STATUSES = ("New Launch", "Under Construction", "Ready to Move")
INVESTMENT_TYPES = ("Assured Returns", "Rental Yield", "Lease Guarantee", "ROI")


class PayloadError(ValueError):
    pass


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Coordinates(_CamelModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Location(_CamelModel):
    city: str
    state: str | None = None
    locality: str | None = None
    address: str | None = None
    pincode: str | None = None
    coordinates: Coordinates | None = None

    @field_validator("city")
    @classmethod
    def _city_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Location with city is required")
        return v


class PropertyPayload(_CamelModel):
    category: str
    purpose: str
    subtype: str
    price: float = Field(ge=0)
    area: float = Field(gt=0)
    area_unit: str | None = None
    location: Location

    description: str | None = None
    images: list[Any] | None = None
    videos: list[Any] | None = None
    floor_plan: Any = None

    # Residential
    bhk: str | None = None
    bathrooms: int | None = Field(default=None, ge=0)
    furnishing: str | None = None
    available_for: list[str] | None = None
    available_from: str | None = None

    # Commercial
    construction_status: str | None = None
    possession_status: str | None = None
    investment_type: str | None = None
    power_capacity: str | None = None
    meeting_rooms: bool | None = None
    pantry: bool | None = None
    conference_room: bool | None = None
    cabins: int | None = Field(default=None, ge=0)
    washrooms: int | None = Field(default=None, ge=0)
    floor_preference: str | None = None
    located_on: str | None = None
    office_spread: str | None = None
    situated_in: str | None = None
    business_type: list[str] | None = None

    amenities: list[str] | None = None
    features: list[str] | None = None
    rera_approved: bool | None = None
    age_of_property: str | None = None
    facing: str | None = None
    parking: str | None = None
    total_floors: int | None = Field(default=None, ge=0)
    floor_number: int | None = None

    @field_validator("category")
    @classmethod
    def _check_category(cls, v: str) -> str:
        if v not in CATEGORIES:
            raise ValueError("Category must be Residential or Commercial")
        return v

    @field_validator("purpose")
    @classmethod
    def _check_purpose(cls, v: str) -> str:
        if v not in PURPOSES:
            raise ValueError("Purpose must be Buy, Rent, or Lease")
        return v

    @field_validator("subtype")
    @classmethod
    def _check_subtype(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("Property type is required")
        return v

    @field_validator("area_unit")
    @classmethod
    def _check_area_unit(cls, v: str | None) -> str | None:
        if v is not None and v not in AREA_UNITS:
            raise ValueError(f"Area unit must be one of: {', '.join(AREA_UNITS)}")
        return v

    @model_validator(mode="after")
    def _check_category_fields(self) -> "PropertyPayload":
        if self.category == "Residential":
            if self.furnishing is not None and self.furnishing not in FURNISHING:
                raise ValueError("Furnishing must be Furnished, Semi-Furnished, or Unfurnished")
        if self.category == "Commercial":
            if self.construction_status is not None and self.construction_status not in CONSTRUCTION_STATUSES:
                raise ValueError("Invalid construction status")
            if self.investment_type is not None and self.investment_type not in INVESTMENT_TYPES:
                raise ValueError("Invalid investment type")
        return self

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


def _first_error(err: ValidationError) -> str:
    e = err.errors()[0]
    loc = ".".join(str(p) for p in e.get("loc") or ())
    msg = str(e.get("msg") or "invalid value")
    # pydantic prefixes custom messages with "Value error, ".
    msg = msg.removeprefix("Value error, ")
    return f"{loc}: {msg}" if loc else msg


def parse_payload(raw: Any) -> dict[str, Any]:
    """
    Validate a payload (dict or JSON string) and return its stored form.

    Raises PayloadError with a single human-readable reason.
    """
    if isinstance(raw, str):
        try:
            return PropertyPayload.model_validate_json(raw).to_json()
        except ValidationError as e:
            raise PayloadError(_first_error(e)) from e
    if not isinstance(raw, dict):
        raise PayloadError("Property payload is required")
    try:
        return PropertyPayload.model_validate(raw).to_json()
    except ValidationError as e:
        raise PayloadError(_first_error(e)) from e
