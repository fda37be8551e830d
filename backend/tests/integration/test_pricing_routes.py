"""
Integration tests for pricing routes.
"""
import pytest


@pytest.mark.integration
def test_get_default_pricing(client):
    response = client.get("/pricing")
    
    assert response.status_code == 200
    assert response.json() == {
        "installation": 500.0,
        "maintenance": 150.0,
        "repair": 200.0,
        "inspection": 100.0,
    }


@pytest.mark.integration
def test_update_pricing_returns_notices_and_impact(client):
    response = client.put("/pricing", json={
        "prices": {"repair": 250},
        "admin_id": "admin-1",
        "admin_name": "Admin One",
    })
    
    assert response.status_code == 200
    body = response.json()
    assert body["pricing"]["repair"] == 250.0
    assert [n["message"] for n in body["notifications"]] == [
        "Repair service price increased from GHC 200 to GHC 250 (25.0% increase)",
    ]
    assert body["impact"][0]["technician_impact"] == "+GHC 45.00 per job"
    
    notices = client.get("/pricing/notifications").json()
    assert len(notices) == 1


@pytest.mark.integration
def test_new_price_does_not_touch_existing_bookings(client):
    booking = client.post("/bookings", json={
        "customer_id": "c-1",
        "customer_name": "Yaa",
        "service_type": "repair",
        "preferred_date": "2026-11-10",
        "preferred_time_slot": "evening",
        "address": "1 Castle Rd",
        "city": "Accra",
    }).json()
    
    client.put("/pricing", json={"prices": {"repair": 400}, "admin_id": "a", "admin_name": "A"})
    
    assert client.get(f"/bookings/{booking['id']}").json()["agreed_price"] == 200.0


@pytest.mark.integration
def test_update_pricing_rejects_negative(client):
    response = client.put("/pricing", json={"prices": {"repair": -1}, "admin_id": "a", "admin_name": "A"})
    
    assert response.status_code == 422


@pytest.mark.integration
def test_quote(client):
    response = client.post("/pricing/quote", json={"base_price": 1000})
    
    assert response.json() == {
        "base_price": 1000.0,
        "service_fee": 20.0,
        "maintenance_fee": 10.0,
        "total_price": 1030.0,
    }


@pytest.mark.integration
def test_cart_total(client):
    response = client.post("/pricing/cart-total", json={
        "items": [{"base_price": 100, "quantity": 2}, {"base_price": 50}],
    })
    
    assert response.json() == {"item_count": 3, "total": 257.5}
