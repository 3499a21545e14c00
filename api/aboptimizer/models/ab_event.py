import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from aboptimizer.models.base import Base, JSONType


class ABEventType(str, enum.Enum):
    impression = "impression"
    add_to_cart = "add_to_cart"
    checkout_initiated = "checkout_initiated"
    cart_updated = "cart_updated"
    purchase = "purchase"


class ABEvent(Base):
    __tablename__ = "ab_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    test_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("ab_tests.id"), nullable=False, index=True)
    # "A" / "B" or the template name the visitor was served
    variant: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    product_id: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[float | None] = mapped_column(Float, nullable=True)
    event_metadata: Mapped[dict | None] = mapped_column("metadata", JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
