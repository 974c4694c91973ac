"""
Pydantic models for initiative data.

``InitiativeCreate`` is the validated creation payload,
``InitiativeUpdate`` the partial payload accepted by updates, and
``Initiative`` the persisted record returned by the API.  Field names
are snake_case in Python and camelCase on the wire and in storage
(``targetArea``, ``createdBy`` ...).  Unknown keys are rejected.
"""

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# Categories offered by the creation form.  Anything else is accepted
# as free text and displayed like the last entry ("other").
CATEGORIES = (
    "ري وموارد مائية",
    "تربية حيوانية",
    "زراعة عضوية",
    "تقنيات حديثة",
    "تدريب وتوعية",
    "أخرى",
)
OTHER_CATEGORY = CATEGORIES[-1]

InitiativeStatus = Literal["active", "completed"]
STATUSES = ("active", "completed")

# Keys the server owns.  Updates may echo them back but never change them.
IMMUTABLE_FIELDS = frozenset({"id", "created_by", "created_at", "updated_at"})


def is_known_category(category: str) -> bool:
    return category in CATEGORIES


def coerce_non_negative_int(value: Any) -> int:
    """Coerce a count or amount to a non-negative integer.

    Integers, floats and numeric strings are truncated to ``int``.
    Anything else (``None``, booleans, garbage strings, negative
    numbers, NaN/infinity) becomes ``0``.
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        if isinstance(value, str):
            number = int(float(value.strip()))
        elif isinstance(value, (int, float)):
            number = int(value)
        else:
            return 0
    except (ValueError, OverflowError):
        return 0
    return number if number > 0 else 0


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _require_text(value: Any) -> Any:
    if value is None:
        raise ValueError("must not be null")
    if isinstance(value, str):
        value = value.strip()
        if not value:
            raise ValueError("must not be empty")
    return value


class InitiativeCreate(CamelModel):
    """Schema for creating an initiative."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: str = Field(..., examples=["مشروع ري بالتنقيط"])
    description: str = Field(..., examples=["تركيب أنظمة ري حديثة للمزارعين"])
    category: str = Field(..., examples=["ري وموارد مائية"])
    status: InitiativeStatus = "active"
    target_area: str = ""
    beneficiaries: int = 0
    budget: int = 0

    @field_validator("title", "description", "category", mode="before")
    @classmethod
    def _non_empty(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("status", mode="before")
    @classmethod
    def _default_status(cls, value: Any) -> Any:
        return value or "active"

    @field_validator("target_area", mode="before")
    @classmethod
    def _default_target_area(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("beneficiaries", "budget", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return coerce_non_negative_int(value)


class InitiativeUpdate(CamelModel):
    """Schema for updating an initiative.

    All fields are optional; only the fields present in the payload are
    merged into the stored record.  ``id``, ``createdBy``, ``createdAt``
    and ``updatedAt`` are accepted so a client can send a full record
    back, but the service ignores them.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: Optional[InitiativeStatus] = None
    target_area: Optional[str] = None
    beneficiaries: Optional[int] = None
    budget: Optional[int] = None

    id: Optional[Any] = None
    created_by: Optional[Any] = None
    created_at: Optional[Any] = None
    updated_at: Optional[Any] = None

    # Validators only run for values actually supplied, so an explicit
    # null is rejected while an absent field stays untouched.
    @field_validator("title", "description", "category", "status", mode="before")
    @classmethod
    def _non_empty(cls, value: Any) -> Any:
        return _require_text(value)

    @field_validator("target_area", mode="before")
    @classmethod
    def _default_target_area(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("beneficiaries", "budget", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return coerce_non_negative_int(value)

    def changes(self) -> dict:
        """Return the mutable fields supplied by the client."""
        fields = self.model_fields_set - IMMUTABLE_FIELDS
        return self.model_dump(include=fields)


class Initiative(CamelModel):
    """A persisted initiative record.

    Writes are checked by ``InitiativeCreate`` and ``InitiativeUpdate``;
    this model reads whatever the store holds.  Statuses outside
    ``active``/``completed`` are kept as-is, counts are coerced like
    on write, missing text fields read as empty strings and timestamps
    without a zone are taken as UTC.
    """

    id: str
    title: str = ""
    description: str = ""
    category: str = ""
    status: str = "active"
    target_area: str = ""
    beneficiaries: int = Field(0, ge=0)
    budget: int = Field(0, ge=0)
    created_by: str = ""
    created_at: datetime
    updated_at: datetime

    @field_validator("title", "description", "category", "target_area", "created_by", mode="before")
    @classmethod
    def _text_or_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _status_or_default(cls, value: Any) -> Any:
        return value or "active"

    @field_validator("beneficiaries", "budget", mode="before")
    @classmethod
    def _non_negative(cls, value: Any) -> int:
        return coerce_non_negative_int(value)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def to_document(self) -> dict:
        """Serialise for the key-value store (camelCase, ISO timestamps)."""
        return self.model_dump(mode="json", by_alias=True)


class InitiativeListResponse(BaseModel):
    initiatives: List[Initiative]


class InitiativeResponse(BaseModel):
    initiative: Initiative


class InitiativeMessageResponse(BaseModel):
    message: str
    initiative: Initiative


class MessageResponse(BaseModel):
    message: str
