from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from gym_admin.core.validation import normalize_phone

# Columns every synchronized collection carries besides its domain fields
RESERVED_FIELDS = frozenset({"id", "order", "created_at", "updated_at"})


class OrderedRecord(BaseModel):
    """
    One persisted row of a synchronized collection.

    Domain fields are kept as model extras and exposed through `payload`.
    Legacy rows created before reordering existed have no `order`.
    """

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    order: Optional[int] = Field(default=None, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def payload(self) -> dict[str, Any]:
        return dict(self.model_extra or {})


class ReorderEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    order: int = Field(ge=0)


class ReorderOperation(BaseModel):
    """
    One permutation of a collection: dense orders 0..n-1, one entry per id.
    """

    model_config = ConfigDict(frozen=True)

    entries: tuple[ReorderEntry, ...] = ()

    @model_validator(mode="after")
    def _check_permutation(self) -> "ReorderOperation":
        ids = [entry.id for entry in self.entries]
        if len(set(ids)) != len(ids):
            raise ValueError("Reorder operation lists the same id twice")
        orders = sorted(entry.order for entry in self.entries)
        if orders != list(range(len(orders))):
            raise ValueError("Reorder operation must assign dense orders 0..n-1")
        return self

    @classmethod
    def from_ids(cls, ids: list[str]) -> "ReorderOperation":
        return cls(entries=tuple(ReorderEntry(id=record_id, order=idx) for idx, record_id in enumerate(ids)))

    @property
    def ids(self) -> list[str]:
        return [entry.id for entry in self.entries]

    def as_mapping(self) -> dict[str, int]:
        return {entry.id: entry.order for entry in self.entries}

    def __len__(self) -> int:
        return len(self.entries)


# Domain payloads. Only the fields the admin forms edit are listed;
# unknown fields are kept so older rows round-trip untouched.


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class Gym(_Payload):
    name: str
    address: str = ""
    description: str = ""
    phone: str = ""
    email: str = ""
    opening_hours: str = ""
    photos: list[str] = Field(default_factory=list)
    features: list[str] = Field(default_factory=list)


class Transformation(_Payload):
    name: str
    before_image: str = ""
    after_image: str = ""
    duration: str = ""
    goal: str = ""
    testimonial: str = ""


class Trainer(_Payload):
    name: str
    slug: Optional[str] = None
    role: str = ""
    bio_short: str = ""
    bio_long: str = ""
    experience_years: int = Field(default=0, ge=0)
    specializations: list[str] = Field(default_factory=list)
    certifications: list[str] = Field(default_factory=list)
    profile_image: str = ""
    featured: bool = False
    accepting_new_clients: bool = True


class MembershipPrice(BaseModel):
    monthly: str = ""
    quarterly: str = ""
    halfyearly: str = ""
    annual: str = ""


class Membership(_Payload):
    name: str
    type: str = ""
    price: MembershipPrice = Field(default_factory=MembershipPrice)
    features: list[str] = Field(default_factory=list)
    is_popular: bool = False


class BlogPost(_Payload):
    title: str
    excerpt: str = ""
    content: str = ""
    image: str = ""
    author: str = ""
    date: str = ""
    category: str = ""


class AddOnCategory(str, Enum):
    TRAINING = "training"
    NUTRITION = "nutrition"
    WELLNESS = "wellness"
    OTHER = "other"


class AddOnPrice(BaseModel):
    per_session: Optional[str] = None
    monthly: Optional[str] = None
    one_time: Optional[str] = None


class AddOnService(_Payload):
    name: str
    description: str = ""
    price: AddOnPrice = Field(default_factory=AddOnPrice)
    features: list[str] = Field(default_factory=list)
    category: AddOnCategory = AddOnCategory.OTHER
    is_popular: bool = False
    is_active: bool = True


class ContactStatus(str, Enum):
    NEW = "new"
    READ = "read"
    RESPONDED = "responded"


class ContactRequest(_Payload):
    name: str
    email: str = ""
    phone: str = ""
    message: str = ""
    status: ContactStatus = ContactStatus.NEW

    @field_validator("phone")
    @classmethod
    def _normalize_phone(cls, value: str) -> str:
        if not value:
            return value
        phone = normalize_phone(value)
        if phone is None:
            raise ValueError(f"Invalid phone number: {value!r}")
        return phone


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookedAddOn(BaseModel):
    service_id: str
    service_name: str
    price: str
    pricing_type: str


class ServiceBooking(_Payload):
    customer_name: str
    customer_email: str = ""
    customer_phone: str = ""
    membership_id: Optional[str] = None
    membership_name: Optional[str] = None
    add_on_services: list[BookedAddOn] = Field(default_factory=list)
    total_amount: str = "0"
    preferred_start_date: Optional[str] = None
    special_requests: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING


COLLECTIONS: dict[str, type[BaseModel]] = {
    "gyms": Gym,
    "transformations": Transformation,
    "trainers": Trainer,
    "memberships": Membership,
    "blog_posts": BlogPost,
    "add_on_services": AddOnService,
    "contact_requests": ContactRequest,
    "service_bookings": ServiceBooking,
}
