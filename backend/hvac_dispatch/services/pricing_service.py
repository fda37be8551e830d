"""
Pricing Service for service prices, catalog fees and the revenue split.

Pure helpers (no database):
- round_currency: the single rounding rule for money (2 dp, half-up)
- resolve_pricing / cart_total: catalog fee breakdown and cart aggregation
- split_revenue: platform commission vs technician payout for a final cost
- calculate_pricing_impact: what an admin price change means per service

PricingService reads and updates the admin-managed service price list,
falling back to the built-in defaults for services without a stored price.
"""
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from hvac_dispatch.lib.business_rules import BusinessRules, get_business_rules
from hvac_dispatch.lib.db import transaction
from hvac_dispatch.lib.errors import DataSourceException, ValidationException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.models.bookings import ServiceType
from hvac_dispatch.models.pricing import ServicePrice, PriceChangeNotification

logger = get_logger(__name__)


# Default service prices (Ghana Cedis - GHS)
SERVICE_BASE_PRICING: Dict[ServiceType, float] = {
    ServiceType.INSTALLATION: 500.0,
    ServiceType.MAINTENANCE: 150.0,
    ServiceType.REPAIR: 200.0,
    ServiceType.INSPECTION: 100.0,
}

CENT = Decimal("0.01")


def round_currency(value: Optional[float]) -> float:
    """Round a money amount to 2 decimal places, half-up. Non-finite input becomes 0."""
    if value is None or not math.isfinite(value):
        return 0.0
    return float(Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def format_amount(value: float) -> str:
    """200.0 -> '200', 250.5 -> '250.5'."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class PricingBreakdown:
    base_price: float
    service_fee: float
    maintenance_fee: float
    total_price: float


@dataclass(frozen=True)
class CartItem:
    base_price: float
    quantity: int = 1


@dataclass(frozen=True)
class RevenueSplit:
    final_cost: float
    platform_commission: float
    technician_payout: float


@dataclass(frozen=True)
class PricingImpact:
    service_type: ServiceType
    old_price: float
    new_price: float
    change_amount: float
    change_percentage: Optional[float]
    customer_impact: str
    technician_impact: str


def resolve_pricing(base_price: float, rules: Optional[BusinessRules] = None) -> PricingBreakdown:
    """
    Fee breakdown for one item.
    
    Each line item is rounded once; the total is the sum of the rounded
    lines so the breakdown always adds up.
    
    Raises:
        ValidationException: If base_price is negative
    """
    rules = rules or get_business_rules()
    if base_price is None or base_price < 0:
        raise ValidationException("Base price must be zero or positive", errors={"base_price": base_price})
    
    base = round_currency(base_price)
    service_fee = round_currency(base * rules.service_fee_rate)
    maintenance_fee = round_currency(base * rules.maintenance_fee_rate)
    total = round_currency(base + service_fee + maintenance_fee)
    
    return PricingBreakdown(
        base_price=base,
        service_fee=service_fee,
        maintenance_fee=maintenance_fee,
        total_price=total,
    )


def cart_total(items: Iterable[CartItem], rules: Optional[BusinessRules] = None) -> float:
    """Sum of item totals × quantity, rounded once at the end."""
    rules = rules or get_business_rules()
    running = 0.0
    for item in items:
        if item.quantity < 0:
            raise ValidationException("Quantity must be zero or positive", errors={"quantity": item.quantity})
        running += resolve_pricing(item.base_price, rules).total_price * item.quantity
    return round_currency(running)


def split_revenue(final_cost: float, rules: Optional[BusinessRules] = None) -> RevenueSplit:
    """
    Split a completed booking's final cost between platform and technician.
    
    The commission is rounded to cents and the payout takes the remainder,
    so platform_commission + technician_payout == final_cost exactly.
    
    Raises:
        ValidationException: If final_cost is negative or not a number
    """
    rules = rules or get_business_rules()
    if final_cost is None or not math.isfinite(final_cost) or final_cost < 0:
        raise ValidationException("Final cost must be zero or positive", errors={"final_cost": final_cost})
    
    total = round_currency(final_cost)
    commission = round_currency(total * rules.platform_commission_rate)
    payout = round_currency(total - commission)
    return RevenueSplit(final_cost=total, platform_commission=commission, technician_payout=payout)


def calculate_pricing_impact(
    old_pricing: Dict[ServiceType, float],
    new_pricing: Dict[ServiceType, float],
    rules: Optional[BusinessRules] = None,
) -> List[PricingImpact]:
    """
    Describe how a price list change affects customers and technicians.
    
    Only services whose price changed are returned, in ServiceType order.
    """
    rules = rules or get_business_rules()
    impacts = []
    for service_type in ServiceType:
        if service_type not in old_pricing or service_type not in new_pricing:
            continue
        old_price = old_pricing[service_type]
        new_price = new_pricing[service_type]
        change_amount = round_currency(new_price - old_price)
        if change_amount == 0:
            continue
        
        change_percentage = (change_amount / old_price) * 100 if old_price else None
        technician_change = round_currency(change_amount * rules.technician_payout_rate)
        sign = "+" if change_amount > 0 else "-"
        
        customer_impact = f"{sign}GHC {abs(change_amount):.2f}"
        if change_percentage is not None:
            customer_impact += f" ({'+' if change_percentage > 0 else ''}{change_percentage:.1f}%)"
        
        impacts.append(PricingImpact(
            service_type=service_type,
            old_price=old_price,
            new_price=new_price,
            change_amount=change_amount,
            change_percentage=change_percentage,
            customer_impact=customer_impact,
            technician_impact=f"{sign}GHC {abs(technician_change):.2f} per job",
        ))
    return impacts


class PricingService:
    """Service price list backed by the service_prices table."""
    
    def __init__(self, db: Session, rules: Optional[BusinessRules] = None):
        self.db = db
        self.rules = rules or get_business_rules()
    
    def get_current_pricing(self) -> Dict[ServiceType, float]:
        """
        Current price for every service type.
        
        Returns:
            Mapping of ServiceType to price; services without a stored
            price use SERVICE_BASE_PRICING
        
        Raises:
            DataSourceException: If the price list cannot be read
        """
        try:
            rows = self.db.execute(select(ServicePrice)).scalars().all()
        except SQLAlchemyError as exc:
            logger.error("Failed to read service pricing", exc_info=True)
            raise DataSourceException("fetch service pricing") from exc
        
        stored = {row.service_type: row.price for row in rows}
        return {
            service_type: stored.get(service_type.value, default)
            for service_type, default in SERVICE_BASE_PRICING.items()
        }
    
    def get_service_price(self, service_type: ServiceType) -> float:
        """Current price for one service type."""
        return self.get_current_pricing()[ServiceType(service_type)]
    
    def initialize_service_pricing(self) -> None:
        """Store the default price for every service type that has none yet."""
        with transaction(self.db, "initialize service pricing"):
            existing = set(self.db.execute(select(ServicePrice.service_type)).scalars().all())
            for service_type, price in SERVICE_BASE_PRICING.items():
                if service_type.value not in existing:
                    self.db.add(ServicePrice(service_type=service_type.value, price=price, updated_by="system"))
        logger.info("Service pricing initialized")
    
    def update_service_pricing(
        self,
        new_pricing: Dict[ServiceType, float],
        admin_id: str,
        admin_name: str,
    ) -> List[PriceChangeNotification]:
        """
        Replace service prices and record a notice per changed service.
        
        Args:
            new_pricing: New price per service type (unlisted services keep their price)
            admin_id: Id stored as updated_by on the price rows
            admin_name: Name stored on the change notices
        
        Returns:
            The PriceChangeNotification rows created (empty if nothing changed)
        
        Raises:
            ValidationException: If any price is negative
            DataSourceException: If the write fails
        """
        invalid = {st.value if isinstance(st, ServiceType) else st: p for st, p in new_pricing.items() if p is None or p < 0}
        if invalid:
            raise ValidationException("Service prices must be zero or positive", errors=invalid)
        
        current = self.get_current_pricing()
        notifications = []
        
        with transaction(self.db, "update service pricing"):
            for service_type, new_price in new_pricing.items():
                service_type = ServiceType(service_type)
                new_price = round_currency(new_price)
                old_price = current[service_type]
                
                row = self.db.get(ServicePrice, service_type.value)
                if row is None:
                    row = ServicePrice(service_type=service_type.value, price=new_price, updated_by=admin_id)
                    self.db.add(row)
                else:
                    row.price = new_price
                    row.updated_by = admin_id
                    row.updated_at = datetime.now(timezone.utc)
                
                if old_price == new_price:
                    continue
                
                change_percentage = ((new_price - old_price) / old_price) * 100 if old_price else None
                direction = "increased" if new_price > old_price else "decreased"
                message = (
                    f"{service_type.value.capitalize()} service price {direction} from "
                    f"GHC {format_amount(old_price)} to GHC {format_amount(new_price)}"
                )
                if change_percentage is not None:
                    noun = "increase" if new_price > old_price else "decrease"
                    message += f" ({abs(change_percentage):.1f}% {noun})"
                
                notification = PriceChangeNotification(
                    service_type=service_type.value,
                    old_price=old_price,
                    new_price=new_price,
                    change_percentage=round(change_percentage, 2) if change_percentage is not None else None,
                    message=message,
                    created_by=admin_name,
                    is_active=True,
                )
                self.db.add(notification)
                notifications.append(notification)
        
        logger.info(
            "Service pricing updated",
            extra={"updated_by": admin_id, "changes": len(notifications)},
        )
        return notifications
    
    def get_active_price_notifications(self) -> List[PriceChangeNotification]:
        """Active price change notices, newest first."""
        stmt = (
            select(PriceChangeNotification)
            .where(PriceChangeNotification.is_active == True)  # noqa: E712
            .order_by(PriceChangeNotification.created_at.desc())
        )
        try:
            return list(self.db.execute(stmt).scalars().all())
        except SQLAlchemyError as exc:
            logger.error("Failed to read price notifications", exc_info=True)
            raise DataSourceException("fetch price notifications") from exc
