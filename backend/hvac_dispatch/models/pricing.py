"""
Service pricing models - admin-managed price list and change notices.
"""
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4, UUID

from sqlalchemy import String, Numeric, Boolean, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hvac_dispatch.lib.db import Base


class ServicePrice(Base):
    """Current price (GHS) for one service type."""
    __tablename__ = "service_prices"
    
    service_type: Mapped[str] = mapped_column(String(32), primary_key=True)
    price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    updated_by: Mapped[str] = mapped_column(String(128), nullable=False, default="system")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    
    def __repr__(self) -> str:
        return f"<ServicePrice(service_type={self.service_type}, price={self.price})>"


class PriceChangeNotification(Base):
    """Notice written whenever an admin changes a service price."""
    __tablename__ = "price_change_notifications"
    
    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True, default=uuid4)
    service_type: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    old_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    new_price: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    change_percentage: Mapped[Optional[float]] = mapped_column(Numeric(8, 2, asdecimal=False), nullable=True)
    message: Mapped[str] = mapped_column(String(500), nullable=False)
    created_by: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    
    def __repr__(self) -> str:
        return (
            f"<PriceChangeNotification(service_type={self.service_type}, "
            f"{self.old_price} -> {self.new_price})>"
        )
