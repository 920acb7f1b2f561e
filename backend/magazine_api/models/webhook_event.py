from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from magazine_api.core.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"
    __table_args__ = (UniqueConstraint("payment_id", "status", name="uq_payment_webhook_events_payment_status"),)

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String, index=True, nullable=False)
    status = Column(String, nullable=False)
    outcome = Column(String, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
