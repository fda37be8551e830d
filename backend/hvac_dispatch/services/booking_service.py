"""
Booking Service - booking lifecycle state machine.

    pending --assign--> confirmed --start--> en_route --arrive--> arrived
        --begin work--> in_progress --complete--> completed
    any non-terminal state --cancel--> cancelled

Every operation that touches more than one record (booking + technician
workload, booking + revenue ledger) runs inside a single transaction:
either all of its writes commit or none do.

Side effects per transition:
- assign: job registered on the new technician, released from a
  previously assigned different technician
- completed / cancelled: job released from the assigned technician
- complete: revenue record appended, technician completed-jobs counter bumped
- review: technician average rating recomputed from all rated, completed jobs
"""
import re
import secrets
from dataclasses import dataclass, field
from datetime import datetime, date, timezone
from typing import Dict, FrozenSet, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hvac_dispatch.lib.business_rules import BusinessRules, get_business_rules
from hvac_dispatch.lib.db import transaction, parse_id
from hvac_dispatch.lib.errors import (
    NotFoundException,
    ConflictException,
    InvalidTransitionException,
    AlreadyCompletedException,
    ValidationException,
    DataSourceException,
)
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.lib.metrics import MetricsCollector, get_metrics_collector
from hvac_dispatch.models.bookings import Booking, BookingStatus, ServiceType, TimeSlot, PriorityLevel
from hvac_dispatch.models.revenue import RevenueRecord
from hvac_dispatch.services.pricing_service import PricingService, split_revenue
from hvac_dispatch.services.technician_service import TechnicianService

logger = get_logger(__name__)


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.EN_ROUTE, BookingStatus.CANCELLED}),
    BookingStatus.EN_ROUTE: frozenset({BookingStatus.ARRIVED, BookingStatus.CANCELLED}),
    BookingStatus.ARRIVED: frozenset({BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED}),
    BookingStatus.IN_PROGRESS: frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED}),
    # Only set by direct external edits; re-enters the flow through assignment
    BookingStatus.RESCHEDULED: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
}

# Statuses from which a (re)assignment may happen
ASSIGNABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.RESCHEDULED})

TERMINAL_STATUSES = frozenset({BookingStatus.COMPLETED, BookingStatus.CANCELLED})

BOOKING_NUMBER_PATTERN = re.compile(r"^VRM(\d{5})P$")


def generate_booking_number() -> str:
    """VRM + 5 random digits + P, e.g. VRM11249P."""
    return f"VRM{10000 + secrets.randbelow(90000)}P"


def is_valid_booking_number(booking_number: str) -> bool:
    return bool(BOOKING_NUMBER_PATTERN.match(booking_number or ""))


def format_booking_number(booking_number: str) -> str:
    """VRM11249P -> 'VRM 11249 P'; anything else is returned unchanged."""
    match = BOOKING_NUMBER_PATTERN.match(booking_number or "")
    if not match:
        return booking_number
    return f"VRM {match.group(1)} P"


def is_transition_allowed(current: BookingStatus, requested: BookingStatus) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


@dataclass
class CompletionDetails:
    """What the technician submits when closing a job."""
    final_cost: float
    service_notes: str
    before_photos: Optional[List[str]] = None
    after_photos: Optional[List[str]] = None
    labor_hours: Optional[float] = None


@dataclass
class CompletionResult:
    booking: Booking
    revenue_record: RevenueRecord


@dataclass
class NewBooking:
    """Customer-supplied booking request."""
    customer_id: str
    customer_name: str
    service_type: ServiceType
    preferred_date: date
    preferred_time_slot: TimeSlot
    address: str
    city: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    service_details: Dict = field(default_factory=dict)
    alternate_date: Optional[date] = None
    location_notes: Optional[str] = None


class BookingService:
    """Booking reads and lifecycle transitions."""
    
    def __init__(
        self,
        db: Session,
        technician_service: Optional[TechnicianService] = None,
        pricing_service: Optional[PricingService] = None,
        rules: Optional[BusinessRules] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.db = db
        self.rules = rules or get_business_rules()
        self.metrics = metrics or get_metrics_collector()
        self.technicians = technician_service or TechnicianService(db, rules=self.rules, metrics=self.metrics)
        self.pricing = pricing_service or PricingService(db, rules=self.rules)
    
    # ===== Reads =====
    
    def load(self, booking_id: UUID, lock: bool = False) -> Booking:
        """
        Load a booking row.
        
        Raises:
            NotFoundException: If no booking has this id
            DataSourceException: If the read fails
        """
        booking_id = parse_id(booking_id, "Booking")
        try:
            booking = self.db.get(Booking, booking_id, with_for_update=lock)
        except SQLAlchemyError as exc:
            logger.error("Failed to fetch booking", extra={"booking_id": str(booking_id)}, exc_info=True)
            raise DataSourceException("fetch booking") from exc
        
        if booking is None:
            logger.warning("Booking not found", extra={"booking_id": str(booking_id)})
            raise NotFoundException("Booking", str(booking_id))
        return booking
    
    def get_booking(self, booking_id: UUID) -> Booking:
        return self.load(booking_id)
    
    def _fetch_all(self, stmt, operation: str) -> List[Booking]:
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            logger.error(f"Failed to {operation}", exc_info=True)
            raise DataSourceException(operation) from exc
    
    def list_customer_bookings(self, customer_id: str) -> List[Booking]:
        """Customer's bookings, newest first."""
        stmt = (
            select(Booking)
            .where(Booking.customer_id == customer_id)
            .order_by(Booking.created_at.desc())
        )
        return self._fetch_all(stmt, "fetch bookings")
    
    def list_bookings(self, limit: int = 50) -> List[Booking]:
        """Most recent bookings across all customers (admin view)."""
        stmt = select(Booking).order_by(Booking.created_at.desc()).limit(limit)
        return self._fetch_all(stmt, "fetch all bookings")
    
    def list_bookings_by_status(self, status: BookingStatus) -> List[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus(status))
            .order_by(Booking.created_at.desc())
        )
        return self._fetch_all(stmt, "fetch bookings by status")
    
    def list_technician_bookings(self, technician_id: UUID) -> List[Booking]:
        """Bookings assigned to a technician, earliest preferred date first."""
        stmt = (
            select(Booking)
            .where(Booking.technician_id == parse_id(technician_id, "Technician"))
            .order_by(Booking.preferred_date.asc(), Booking.created_at.asc())
        )
        return self._fetch_all(stmt, "fetch technician bookings")
    
    # ===== Creation =====
    
    def create_booking(self, request: NewBooking) -> Booking:
        """
        Create a pending booking with the current service price locked in.
        
        Raises:
            DataSourceException: If the price list or the insert fails
        """
        service_type = ServiceType(request.service_type)
        details = dict(request.service_details or {})
        try:
            priority = PriorityLevel(details.get("urgency_level") or PriorityLevel.NORMAL)
        except ValueError:
            raise ValidationException(
                f"Unknown urgency level '{details.get('urgency_level')}'",
                errors={"urgency_level": [p.value for p in PriorityLevel]},
            )
        agreed_price = self.pricing.get_service_price(service_type)
        
        booking = Booking(
            booking_number=generate_booking_number(),
            customer_id=request.customer_id,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            service_type=service_type,
            service_details=details,
            agreed_price=agreed_price,
            preferred_date=request.preferred_date,
            preferred_time_slot=TimeSlot(request.preferred_time_slot),
            alternate_date=request.alternate_date,
            address=request.address,
            city=request.city,
            location_notes=request.location_notes,
            status=BookingStatus.PENDING,
            priority=priority,
        )
        with transaction(self.db, "create booking"):
            self.db.add(booking)
        
        logger.info(
            "Booking created",
            extra={
                "booking_id": str(booking.id),
                "booking_number": booking.booking_number,
                "service_type": service_type.value,
                "agreed_price": agreed_price,
            },
        )
        return booking
    
    # ===== Transitions =====
    
    def _check_transition(self, booking: Booking, requested: BookingStatus) -> None:
        if booking.status == BookingStatus.COMPLETED and requested == BookingStatus.COMPLETED:
            raise AlreadyCompletedException(str(booking.id))
        if self.rules.enforce_status_transitions and not is_transition_allowed(booking.status, requested):
            raise InvalidTransitionException(booking.status.value, requested.value)
    
    def _release_from_technician(self, booking: Booking, technician_id: Optional[UUID] = None) -> None:
        technician_id = technician_id or booking.technician_id
        if technician_id is None:
            return
        try:
            technician = self.technicians.load(technician_id, lock=True)
        except NotFoundException:
            logger.warning(
                "Assigned technician no longer exists; nothing to release",
                extra={"booking_id": str(booking.id), "technician_id": str(technician_id)},
            )
            return
        self.technicians.release_job(technician, str(booking.id))
    
    def _apply_completion(self, booking: Booking, details: CompletionDetails) -> RevenueRecord:
        if details.labor_hours is not None and details.labor_hours < 0:
            raise ValidationException("Labor hours must be zero or positive", errors={"labor_hours": details.labor_hours})
        split = split_revenue(details.final_cost, self.rules)
        now = datetime.now(timezone.utc)
        
        booking.final_cost = split.final_cost
        booking.service_notes = details.service_notes
        if details.before_photos is not None:
            booking.before_photos = list(details.before_photos)
        if details.after_photos is not None:
            booking.after_photos = list(details.after_photos)
        if details.labor_hours is not None:
            booking.labor_hours = details.labor_hours
        booking.status = BookingStatus.COMPLETED
        booking.completed_at = now
        booking.updated_at = now
        
        record = RevenueRecord(
            booking_id=booking.id,
            customer_id=booking.customer_id,
            technician_id=booking.technician_id,
            service_type=booking.service_type.value,
            agreed_price=booking.agreed_price,
            final_cost=split.final_cost,
            commission_rate=self.rules.platform_commission_rate,
            platform_commission=split.platform_commission,
            technician_payout=split.technician_payout,
            completed_at=now,
        )
        self.db.add(record)
        
        if booking.technician_id is not None:
            try:
                technician = self.technicians.load(booking.technician_id, lock=True)
            except NotFoundException:
                technician = None
            if technician is not None:
                self.technicians.release_job(technician, str(booking.id))
                self.technicians.record_completion(technician)
        return record
    
    def assign_technician(self, booking_id: UUID, technician_id: UUID) -> Booking:
        """
        Assign (or reassign) a technician and confirm the booking.
        
        Raises:
            NotFoundException: Booking or technician missing
            ConflictException: Technician inactive or not approved
            InvalidTransitionException: Booking already in progress or finished
        """
        with transaction(self.db, "assign technician"):
            booking = self.load(booking_id, lock=True)
            technician = self.technicians.load(technician_id, lock=True)
            
            if not technician.is_active or not technician.is_approved:
                raise ConflictException(
                    "Technician is not active and approved",
                    details={"technician_id": str(technician.id)},
                )
            if self.rules.enforce_status_transitions and booking.status not in ASSIGNABLE_STATUSES:
                raise InvalidTransitionException(booking.status.value, BookingStatus.CONFIRMED.value)
            
            previous_status = booking.status
            previous_technician_id = booking.technician_id
            if previous_technician_id is not None and previous_technician_id != technician.id:
                self._release_from_technician(booking, previous_technician_id)
            
            now = datetime.now(timezone.utc)
            booking.technician_id = technician.id
            booking.technician_name = technician.display_name
            booking.technician_email = technician.email
            booking.technician_phone = technician.phone
            booking.assigned_at = now
            booking.status = BookingStatus.CONFIRMED
            booking.updated_at = now
            
            self.technicians.register_job(technician, str(booking.id))
        
        self.metrics.increment_transitions(previous_status.value, BookingStatus.CONFIRMED.value)
        logger.info(
            "Technician assigned to booking",
            extra={
                "booking_id": str(booking.id),
                "technician_id": str(technician.id),
                "previous_technician_id": str(previous_technician_id) if previous_technician_id else None,
            },
        )
        return booking
    
    def update_status(self, booking_id: UUID, new_status: BookingStatus) -> Booking:
        """
        Move a booking to a new status.
        
        Reaching 'completed' this way completes the job at its agreed price
        (revenue record included); reaching 'completed' or 'cancelled'
        releases the job from the assigned technician.
        
        Raises:
            NotFoundException: Booking missing
            ValidationException: Unknown status
            AlreadyCompletedException: Booking already completed
            InvalidTransitionException: Move not in the transition table
            ConflictException: Confirming a booking without a technician
        """
        try:
            new_status = BookingStatus(new_status)
        except ValueError:
            raise ValidationException(
                f"Unknown booking status '{new_status}'",
                errors={"status": [s.value for s in BookingStatus]},
            )
        
        with transaction(self.db, "update booking status"):
            booking = self.load(booking_id, lock=True)
            previous_status = booking.status
            self._check_transition(booking, new_status)
            
            if new_status == BookingStatus.CONFIRMED and booking.technician_id is None:
                raise ConflictException(
                    "Booking has no technician assigned",
                    details={"booking_id": str(booking.id)},
                )
            
            if new_status == BookingStatus.COMPLETED:
                self._apply_completion(booking, CompletionDetails(
                    final_cost=booking.final_cost if booking.final_cost is not None else booking.agreed_price,
                    service_notes=booking.service_notes or "",
                ))
            else:
                now = datetime.now(timezone.utc)
                booking.status = new_status
                booking.updated_at = now
                if new_status == BookingStatus.IN_PROGRESS and booking.actual_start_time is None:
                    booking.actual_start_time = now
                if new_status in TERMINAL_STATUSES:
                    self._release_from_technician(booking)
        
        self.metrics.increment_transitions(previous_status.value, new_status.value)
        if new_status == BookingStatus.COMPLETED:
            self.metrics.increment_revenue_records(booking.service_type.value)
        logger.info(
            "Booking status updated",
            extra={
                "booking_id": str(booking.id),
                "from_status": previous_status.value,
                "to_status": new_status.value,
            },
        )
        return booking
    
    def start_trip(self, booking_id: UUID) -> Booking:
        return self.update_status(booking_id, BookingStatus.EN_ROUTE)
    
    def mark_arrived(self, booking_id: UUID) -> Booking:
        return self.update_status(booking_id, BookingStatus.ARRIVED)
    
    def begin_work(self, booking_id: UUID) -> Booking:
        return self.update_status(booking_id, BookingStatus.IN_PROGRESS)
    
    def complete_booking(self, booking_id: UUID, details: CompletionDetails) -> CompletionResult:
        """
        Close a job: record final cost and notes, append the revenue record,
        free the technician's slot and count the completed job.
        
        Raises:
            NotFoundException: Booking missing
            AlreadyCompletedException: Booking already completed (no new record)
            InvalidTransitionException: Booking not in progress
            ValidationException: Negative final cost or labor hours
        """
        with transaction(self.db, "complete booking"):
            booking = self.load(booking_id, lock=True)
            previous_status = booking.status
            self._check_transition(booking, BookingStatus.COMPLETED)
            record = self._apply_completion(booking, details)
        
        self.metrics.increment_transitions(previous_status.value, BookingStatus.COMPLETED.value)
        self.metrics.increment_revenue_records(booking.service_type.value)
        logger.info(
            "Booking completed",
            extra={
                "booking_id": str(booking.id),
                "technician_id": str(booking.technician_id) if booking.technician_id else None,
                "final_cost": record.final_cost,
                "platform_commission": record.platform_commission,
                "technician_payout": record.technician_payout,
            },
        )
        return CompletionResult(booking=booking, revenue_record=record)
    
    def add_review(self, booking_id: UUID, rating: int, review: Optional[str] = None) -> Booking:
        """
        Store the customer's rating and refresh the technician's average.
        
        Raises:
            NotFoundException: Booking missing
            ValidationException: Rating outside 1-5
            ConflictException: Booking not completed
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationException("Rating must be an integer from 1 to 5", errors={"rating": rating})
        
        with transaction(self.db, "add review"):
            booking = self.load(booking_id, lock=True)
            if booking.status != BookingStatus.COMPLETED:
                raise ConflictException(
                    "Only completed bookings can be reviewed",
                    details={"booking_id": str(booking.id), "status": booking.status.value},
                )
            booking.customer_rating = rating
            booking.customer_review = review
            booking.updated_at = datetime.now(timezone.utc)
            
            average = None
            if booking.technician_id is not None:
                try:
                    technician = self.technicians.load(booking.technician_id, lock=True)
                except NotFoundException:
                    technician = None
                if technician is not None:
                    average = self.technicians.refresh_rating(technician)
        
        logger.info(
            "Booking review added",
            extra={"booking_id": str(booking.id), "rating": rating, "technician_average": average},
        )
        return booking
    
    def cancel_booking(self, booking_id: UUID) -> Booking:
        """
        Cancel a booking and free the technician's slot.
        
        Raises:
            NotFoundException: Booking missing
            InvalidTransitionException: Booking already completed or cancelled
        """
        return self.update_status(booking_id, BookingStatus.CANCELLED)
