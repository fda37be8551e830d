"""
Revenue record model - append-only ledger of completed bookings.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Numeric, DateTime, ForeignKey, Uuid, event
from sqlalchemy.orm import Mapped, mapped_column

from hvac_dispatch.lib.db import Base


class RevenueRecord(Base):
    """
    One entry per completed booking (unique booking_id).
    Rows are written once and never updated.
    """
    __tablename__ = "revenue_records"
    
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    booking_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
        index=True,
    )
    customer_id: Mapped[str] = mapped_column(String(128), nullable=False)
    technician_id: Mapped[Optional[UUID]] = mapped_column(Uuid, nullable=True, index=True)
    service_type: Mapped[str] = mapped_column(String(32), nullable=False)
    
    # Money (GHS)
    agreed_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    final_cost: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    commission_rate: Mapped[float] = mapped_column(Numeric(5, 4, asdecimal=False), nullable=False)
    platform_commission: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    technician_payout: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    
    completed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
    
    def __repr__(self) -> str:
        return (
            f"<RevenueRecord(booking_id={self.booking_id}, final_cost={self.final_cost}, "
            f"commission={self.platform_commission})>"
        )


@event.listens_for(RevenueRecord, "before_update")
def _reject_ledger_updates(mapper, connection, target):
    raise ValueError("Revenue records are append-only")
