import pytest
from fastapi.testclient import TestClient

from safety_bonus.config import local_today
from safety_bonus.main import app

client = TestClient(app)


def seed_event(bonus_score=3):
    driver = client.post("/api/drivers", json={
        "driver_code": "JS01", "first_name": "John", "last_name": "Smith"
    }).json()
    category = client.post("/api/safety-categories", json={
        "code": "B001", "description": "Clean inspection", "scoring_system": bonus_score, "p_i_score": 1
    }).json()
    client.post("/api/safety-events", json={
        "driver_id": driver["driver_id"], "category_id": category["category_id"],
        "event_date": local_today().isoformat()
    })
    return driver, category

def test_dashboard_page_loads():
    """Test that the dashboard page loads successfully."""
    response = client.get("/dashboard")
    assert response.status_code == 200
    assert "Driver Safety Bonus" in response.text
    assert "stats-grid" in response.text

def test_dashboard_has_stat_cards():
    """Test that the four headline figures are rendered."""
    response = client.get("/dashboard")
    for element_id in ("total-events", "active-trucks", "driver-count", "avg-bonus"):
        assert f'id="{element_id}"' in response.text
    assert "Total Events" in response.text
    assert "Avg Bonus Score" in response.text

def test_dashboard_empty_state():
    """Test the placeholders shown before any events exist."""
    response = client.get("/dashboard")
    assert "Insufficient data for trend analysis" in response.text
    assert "No safety events logged yet" in response.text
    assert '<div class="value" id="avg-bonus">0.0</div>' in response.text

def test_dashboard_shows_activity():
    """Test that a logged event reaches the trend and the activity feed."""
    seed_event()
    response = client.get("/dashboard")
    assert "Insufficient data for trend analysis" not in response.text
    assert "John Smith" in response.text
    assert "B001" in response.text
    assert "Current Period" in response.text
    assert "+3" in response.text

def test_dashboard_api_summary():
    """Test the JSON aggregates behind the page."""
    seed_event(bonus_score=7)
    response = client.get("/api/dashboard")
    assert response.status_code == 200
    summary = response.json()

    assert summary["total_events"] == 1
    assert summary["driver_count"] == 1
    assert summary["active_trucks"] == 0
    assert summary["average_bonus_score"] == pytest.approx(7.0)
    risk = {bucket["name"]: bucket for bucket in summary["risk_profile"]}
    assert risk["Medium"]["count"] == 1
    assert risk["Medium"]["percentage"] == 100
    assert len(summary["trend"]["labels"]) == 12
    assert summary["trend"]["series"][0]["counts"][-1] == 1
    assert summary["recent_activity"][0]["driver_name"] == "John Smith"
