import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, event
from sqlalchemy.sql import func

from magazine_api.core.database import Base
from magazine_api.core.errors import PersistenceError


class PaymentStatus(str, enum.Enum):
    PAID = "Paid"
    CANCEL = "Cancel"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentLedgerEntry(Base):
    __tablename__ = "payment"

    id = Column(Integer, primary_key=True, index=True)
    transaction_key = Column(String, index=True, nullable=False)
    user_id = Column(String, index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    status = Column(String, index=True, nullable=False)
    start_at = Column(DateTime(timezone=True), nullable=False)
    end_at = Column(DateTime(timezone=True), nullable=False)
    end_grace_at = Column(DateTime(timezone=True), nullable=False)
    next_schedule_at = Column(DateTime(timezone=True), nullable=False)
    next_schedule_id = Column(String, index=True, nullable=False)
    # Python-side default keeps microseconds; "latest in group" depends on it.
    created_at = Column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return (
            f"<PaymentLedgerEntry id={self.id} transaction_key={self.transaction_key} "
            f"status={self.status} amount={self.amount}>"
        )


@event.listens_for(PaymentLedgerEntry, "before_update")
def _refuse_update(mapper, connection, target) -> None:
    raise PersistenceError("Ledger entries are append-only", entry_id=target.id)


@event.listens_for(PaymentLedgerEntry, "before_delete")
def _refuse_delete(mapper, connection, target) -> None:
    raise PersistenceError("Ledger entries are append-only", entry_id=target.id)
