"""
Unit tests for pricing helpers and the service price list.
"""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from hvac_dispatch.lib.business_rules import BusinessRules
from hvac_dispatch.lib.errors import DataSourceException, ValidationException
from hvac_dispatch.models.bookings import ServiceType
from hvac_dispatch.models.pricing import PriceChangeNotification
from hvac_dispatch.services.pricing_service import (
    SERVICE_BASE_PRICING,
    CartItem,
    PricingService,
    calculate_pricing_impact,
    cart_total,
    format_amount,
    resolve_pricing,
    round_currency,
    split_revenue,
)


@pytest.mark.unit
def test_round_currency_is_half_up():
    assert round_currency(2.675) == 2.68
    assert round_currency(2.665) == 2.67
    assert round_currency(10) == 10.0


@pytest.mark.unit
def test_round_currency_non_finite_becomes_zero():
    assert round_currency(None) == 0.0
    assert round_currency(float("nan")) == 0.0
    assert round_currency(float("inf")) == 0.0


@pytest.mark.unit
def test_format_amount_drops_trailing_zeros():
    assert format_amount(200.0) == "200"
    assert format_amount(250.5) == "250.5"
    assert format_amount(99.99) == "99.99"


@pytest.mark.unit
def test_resolve_pricing_default_rates():
    breakdown = resolve_pricing(100)
    
    assert breakdown.base_price == 100.0
    assert breakdown.service_fee == 2.0
    assert breakdown.maintenance_fee == 1.0
    assert breakdown.total_price == 103.0


@pytest.mark.unit
def test_resolve_pricing_rounds_each_line():
    breakdown = resolve_pricing(333.33)
    
    assert breakdown.service_fee == 6.67
    assert breakdown.maintenance_fee == 3.33
    assert breakdown.total_price == 343.33


@pytest.mark.unit
def test_resolve_pricing_uses_configured_rates():
    rules = BusinessRules(service_fee_rate=0.05, maintenance_fee_rate=0.0)
    breakdown = resolve_pricing(200, rules)
    
    assert breakdown.service_fee == 10.0
    assert breakdown.maintenance_fee == 0.0
    assert breakdown.total_price == 210.0


@pytest.mark.unit
def test_resolve_pricing_rejects_negative_price():
    with pytest.raises(ValidationException):
        resolve_pricing(-1)


@pytest.mark.unit
def test_cart_total_sums_then_rounds():
    total = cart_total([CartItem(base_price=100, quantity=2), CartItem(base_price=50)])
    assert total == 257.5


@pytest.mark.unit
def test_cart_total_empty_cart():
    assert cart_total([]) == 0.0


@pytest.mark.unit
def test_cart_total_rejects_negative_quantity():
    with pytest.raises(ValidationException):
        cart_total([CartItem(base_price=100, quantity=-1)])


@pytest.mark.unit
def test_split_revenue_example():
    split = split_revenue(200)
    
    assert split.final_cost == 200.0
    assert split.platform_commission == 20.0
    assert split.technician_payout == 180.0


@pytest.mark.unit
@pytest.mark.parametrize("final_cost", [0.01, 99.99, 123.45, 1000.05, 7777.77])
def test_split_revenue_always_adds_up(final_cost):
    split = split_revenue(final_cost)
    assert split.platform_commission + split.technician_payout == pytest.approx(split.final_cost, abs=1e-9)


@pytest.mark.unit
def test_split_revenue_custom_rates():
    rules = BusinessRules(platform_commission_rate=0.15, technician_payout_rate=0.85)
    split = split_revenue(300, rules)
    
    assert split.platform_commission == 45.0
    assert split.technician_payout == 255.0


@pytest.mark.unit
@pytest.mark.parametrize("final_cost", [-10, float("nan")])
def test_split_revenue_rejects_invalid_cost(final_cost):
    with pytest.raises(ValidationException):
        split_revenue(final_cost)


@pytest.mark.unit
def test_calculate_pricing_impact_only_changed_services():
    old = dict(SERVICE_BASE_PRICING)
    new = dict(SERVICE_BASE_PRICING)
    new[ServiceType.REPAIR] = 250.0
    
    impacts = calculate_pricing_impact(old, new)
    
    assert len(impacts) == 1
    impact = impacts[0]
    assert impact.service_type == ServiceType.REPAIR
    assert impact.change_amount == 50.0
    assert impact.change_percentage == pytest.approx(25.0)
    assert impact.customer_impact == "+GHC 50.00 (+25.0%)"
    assert impact.technician_impact == "+GHC 45.00 per job"


@pytest.mark.unit
def test_calculate_pricing_impact_decrease():
    old = {ServiceType.INSPECTION: 100.0}
    new = {ServiceType.INSPECTION: 80.0}
    
    impact = calculate_pricing_impact(old, new)[0]
    
    assert impact.change_amount == -20.0
    assert impact.customer_impact == "-GHC 20.00 (-20.0%)"
    assert impact.technician_impact == "-GHC 18.00 per job"


@pytest.mark.unit
def test_current_pricing_falls_back_to_defaults(db_session):
    service = PricingService(db_session)
    
    assert service.get_current_pricing() == SERVICE_BASE_PRICING
    assert service.get_service_price("repair") == 200.0


@pytest.mark.unit
def test_initialize_service_pricing_is_idempotent(db_session):
    service = PricingService(db_session)
    service.initialize_service_pricing()
    service.initialize_service_pricing()
    
    assert service.get_current_pricing() == SERVICE_BASE_PRICING


@pytest.mark.unit
def test_update_service_pricing_records_notice(db_session):
    service = PricingService(db_session)
    
    notifications = service.update_service_pricing({ServiceType.REPAIR: 250}, "admin-1", "Admin One")
    
    assert len(notifications) == 1
    notice = notifications[0]
    assert notice.message == "Repair service price increased from GHC 200 to GHC 250 (25.0% increase)"
    assert notice.old_price == 200.0
    assert notice.new_price == 250.0
    assert notice.change_percentage == 25.0
    assert notice.created_by == "Admin One"
    assert service.get_service_price(ServiceType.REPAIR) == 250.0
    assert service.get_service_price(ServiceType.INSTALLATION) == 500.0


@pytest.mark.unit
def test_update_service_pricing_decrease_message(db_session):
    service = PricingService(db_session)
    
    notice = service.update_service_pricing({ServiceType.MAINTENANCE: 120}, "admin-1", "Admin One")[0]
    
    assert notice.message == "Maintenance service price decreased from GHC 150 to GHC 120 (20.0% decrease)"


@pytest.mark.unit
def test_update_service_pricing_unchanged_price_has_no_notice(db_session):
    service = PricingService(db_session)
    
    assert service.update_service_pricing({ServiceType.REPAIR: 200}, "admin-1", "Admin One") == []
    assert db_session.query(PriceChangeNotification).count() == 0


@pytest.mark.unit
def test_update_service_pricing_rejects_negative(db_session):
    service = PricingService(db_session)
    
    with pytest.raises(ValidationException):
        service.update_service_pricing({ServiceType.REPAIR: -5}, "admin-1", "Admin One")
    assert service.get_service_price(ServiceType.REPAIR) == 200.0


@pytest.mark.unit
def test_active_price_notifications_newest_first(db_session):
    service = PricingService(db_session)
    service.update_service_pricing({ServiceType.REPAIR: 250}, "admin-1", "Admin One")
    service.update_service_pricing({ServiceType.REPAIR: 300}, "admin-1", "Admin One")
    
    notices = service.get_active_price_notifications()
    
    assert [n.new_price for n in notices] == [300.0, 250.0]


@pytest.mark.unit
def test_pricing_read_failure_is_wrapped(db_session):
    service = PricingService(db_session)
    error = OperationalError("SELECT", {}, Exception("database is down"))
    
    with patch.object(db_session, "execute", side_effect=error):
        with pytest.raises(DataSourceException) as exc_info:
            service.get_current_pricing()
    
    assert exc_info.value.message == "Failed to fetch service pricing"
    assert exc_info.value.status_code == 503
