"""
Stored entities. Stored and returned as camelCase JSON (the clients' wire format).
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return uuid.uuid4().hex[:16]


class StoredModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def load_many(cls, records: list) -> list:
        """Validate stored records, skipping (and logging) the ones that do not fit the model."""
        items = []
        for data in records:
            try:
                items.append(cls.model_validate(data))
            except ValidationError as e:
                record_id = data.get("id") if isinstance(data, dict) else None
                logger.warning("Skipping unreadable %s record %s: %d errors", cls.__name__, record_id, e.error_count())
        return items


class HistoryEntry(StoredModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: str
    timestamp: datetime = Field(default_factory=utcnow)
    changed_by: str
    notes: str = ""


class Order(StoredModel):
    id: str
    order_number: str
    product_id: str
    customer_name: str
    customer_phone: str
    customer_address: str
    quantity: int
    notes: str = ""
    status: str = "pending"
    delivery_man_id: str | None = None
    shipping_price: float | None = None
    payment_received: float | None = None
    status_history: list[HistoryEntry] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None
    updated_by: str | None = None


class Product(StoredModel):
    id: str = Field(default_factory=generate_id)
    name: str
    price: float
    discount_price: float | None = None
    stock: int | None = None  # None = unlimited
    description: str = ""
    media_url: str = ""
    media_urls: list[str] = Field(default_factory=list)
    media_type: Literal["image", "video"] = "image"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime | None = None


class DeliveryMan(StoredModel):
    id: str = Field(default_factory=generate_id)
    name: str
    phone: str
    password: str  # passlib hash, never returned
    created_at: datetime = Field(default_factory=utcnow)

    def public(self) -> dict:
        data = self.to_json()
        data.pop("password", None)
        return data
