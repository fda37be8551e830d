"""
Team model - technicians grouped under a lead for multi-person jobs.
"""
from datetime import datetime, timezone
from uuid import uuid4, UUID

from sqlalchemy import String, Boolean, DateTime, JSON, ForeignKey, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from hvac_dispatch.lib.db import Base


class Team(Base):
    """
    A crew of technicians. member_ids always includes the lead.
    """
    __tablename__ = "teams"
    
    id: Mapped[UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid4,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # Lead
    lead_technician_id: Mapped[UUID] = mapped_column(
        Uuid,
        ForeignKey("technicians.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    lead_technician_name: Mapped[str] = mapped_column(String(255), nullable=False)
    
    # Members (technician ids as strings, lead first)
    member_ids: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False, index=True)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
    
    def __repr__(self) -> str:
        return f"<Team(id={self.id}, name={self.name}, members={len(self.member_ids or [])})>"
