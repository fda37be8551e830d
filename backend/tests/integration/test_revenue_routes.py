"""
Integration tests for admin revenue reports.
"""
from datetime import datetime, timedelta, timezone

import pytest


def complete_job(client, technician_id, final_cost):
    booking = client.post("/bookings", json={
        "customer_id": "c-1",
        "customer_name": "Esi",
        "service_type": "maintenance",
        "preferred_date": "2026-11-10",
        "preferred_time_slot": "morning",
        "address": "3 Spintex Rd",
        "city": "Accra",
    }).json()
    client.post(f"/bookings/{booking['id']}/assign", json={"technician_id": technician_id})
    for status in ("en_route", "arrived", "in_progress"):
        client.patch(f"/bookings/{booking['id']}/status", json={"status": status})
    response = client.post(f"/bookings/{booking['id']}/complete", json={"final_cost": final_cost})
    assert response.status_code == 200
    return booking


@pytest.mark.integration
def test_platform_revenue(client, make_technician):
    technician = make_technician()
    complete_job(client, str(technician.id), 150)
    complete_job(client, str(technician.id), 250)
    
    body = client.get("/admin/revenue").json()
    
    assert body["completed_bookings"] == 2
    assert body["total_revenue"] == 400.0
    assert body["platform_commission"] == 40.0
    assert body["technician_payouts"] == 360.0
    assert body["daily_revenue"] == 400.0
    assert body["average_booking_value"] == 200.0


@pytest.mark.integration
def test_daily_revenue_and_commissions(client, make_technician):
    technician = make_technician()
    first = complete_job(client, str(technician.id), 100)
    second = complete_job(client, str(technician.id), 300)
    now = datetime.now(timezone.utc)
    
    daily = client.get("/admin/revenue/daily", params={
        "start": (now - timedelta(days=1)).isoformat(),
        "end": (now + timedelta(days=1)).isoformat(),
    }).json()
    commissions = client.get("/admin/revenue/commissions").json()
    
    assert len(daily) == 1
    assert daily[0]["bookings"] == 2
    assert daily[0]["revenue"] == 400.0
    assert [c["booking_id"] for c in commissions] == [second["id"], first["id"]]
    assert commissions[0]["technician_payout"] == 270.0


@pytest.mark.integration
def test_daily_revenue_requires_range(client):
    assert client.get("/admin/revenue/daily").status_code == 422


@pytest.mark.integration
def test_revenue_stats(client, make_technician):
    complete_job(client, str(make_technician().id), 120)
    
    body = client.get("/admin/revenue/stats", params={"period": "year"}).json()
    
    assert body["revenue"] == 120.0
    assert body["growth"] == 100.0


@pytest.mark.integration
def test_revenue_stats_unknown_period(client):
    assert client.get("/admin/revenue/stats", params={"period": "decade"}).status_code == 422
