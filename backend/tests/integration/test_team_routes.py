"""
Integration tests for team routes.
"""
from uuid import uuid4

import pytest

from hvac_dispatch.models.technicians import TechnicianLevel


@pytest.mark.integration
def test_create_and_fetch_team(client, make_technician):
    lead = make_technician(level=TechnicianLevel.LEAD)
    member = make_technician()
    
    response = client.post(
        "/teams",
        json={"name": "Install Crew", "lead_technician_id": str(lead.id), "member_ids": [str(member.id)]},
    )
    
    assert response.status_code == 201
    team = response.json()
    assert team["member_ids"] == [str(lead.id), str(member.id)]
    assert [m["role"] for m in team["members"]] == ["lead", "member"]
    
    fetched = client.get(f"/teams/{team['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Install Crew"
    assert [t["id"] for t in client.get("/teams").json()] == [team["id"]]
    
    profile = client.get(f"/technicians/{lead.id}").json()
    assert profile["team_id"] == team["id"]
    assert profile["is_team_lead"] is True


@pytest.mark.integration
def test_create_team_unknown_lead_is_404(client):
    response = client.post("/teams", json={"name": "Nobody", "lead_technician_id": str(uuid4())})
    
    assert response.status_code == 404


@pytest.mark.integration
def test_create_team_blank_name_is_422(client, make_technician):
    lead = make_technician()
    
    response = client.post("/teams", json={"name": "", "lead_technician_id": str(lead.id)})
    
    assert response.status_code == 422


@pytest.mark.integration
def test_get_unknown_team_is_404(client):
    assert client.get(f"/teams/{uuid4()}").status_code == 404
