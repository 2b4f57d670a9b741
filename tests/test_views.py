import pytest

from safety_bonus.config import local_today
from safety_bonus.views import (
    DashboardView,
    DriverRosterView,
    DriverSetupView,
    DriverTypeSetupView,
    SafetyCategorySetupView,
    SafetyEventLogView,
    ScorecardSetupView,
    ScorecardView,
    TruckView,
    ViewState,
)


@pytest.fixture
def fleet(store):
    """A small fleet: three drivers, two trucks, one category, two SAFETY metrics."""
    store.init()
    john = store.save_driver({"driver_code": "JS01", "first_name": "John", "last_name": "Smith"})
    al = store.save_driver({"driver_code": "AS02", "first_name": "Al", "last_name": "Smithson"})
    mary = store.save_driver({"driver_code": "MJ03", "first_name": "Mary", "last_name": "Jones"})
    truck_a = store.save_truck({"unit_number": "A-100"})
    truck_b = store.save_truck({"unit_number": "B-200"})
    category = store.save_safety_category(
        {"code": "B001", "description": "Clean inspection", "scoring_system": 3, "p_i_score": 1})
    pre_trip = store.save_scorecard_metric({"sc_category": "SAFETY", "sc_description": "Pre-trip"})
    seat_belt = store.save_scorecard_metric({"sc_category": "SAFETY", "sc_description": "Seat belt"})
    return {
        "john": john, "al": al, "mary": mary,
        "truck_a": truck_a, "truck_b": truck_b,
        "category": category, "pre_trip": pre_trip, "seat_belt": seat_belt,
    }


class TestRoster:
    """Test roster search and totals."""

    def test_search_matches_name_substring(self, store, fleet):
        view = DriverRosterView(store)
        view.set_search("smi")
        names = [row["driver"].last_name for row in view.rows]
        assert names == ["Smith", "Smithson"]

    def test_search_matches_code(self, store, fleet):
        view = DriverRosterView(store)
        view.set_search("mj0")
        assert [row["driver"].first_name for row in view.rows] == ["Mary"]

    def test_rows_show_truck_and_totals(self, store, fleet):
        store.assign_truck(fleet["john"].driver_id, fleet["truck_a"].truck_id)
        for _ in range(2):
            store.save_safety_event({"driver_id": fleet["john"].driver_id,
                                     "category_id": fleet["category"].category_id,
                                     "event_date": "2025-03-03"})
        view = DriverRosterView(store)
        row = next(r for r in view.rows if r["driver"].driver_id == fleet["john"].driver_id)
        assert row["truck"] == "A-100"
        assert row["driver_type"] == "N/A"
        assert row["event_count"] == 2
        assert row["total_bonus_score"] == 6
        assert row["status"] == "Warning"


class TestCrudLifecycle:
    """Test the browse, edit, save and delete cycle."""

    def test_required_fields(self, store, fleet):
        view = DriverSetupView(store)
        view.open_create()
        view.update_form(driver_code="X1", first_name="  ")

        assert view.save() is False
        assert view.alert == "Please fill in all required fields."
        assert view.state == ViewState.EDITING
        assert len(store.drivers) == 3

    def test_create_returns_to_browsing(self, store, fleet):
        view = DriverSetupView(store)
        view.open_create()
        view.update_form(driver_code="NEW1", first_name="Nia", last_name="Ward")

        assert view.save() is True
        assert view.state == ViewState.BROWSING
        assert view.alert is None
        assert any(d.driver_code == "NEW1" for d in store.drivers)

    def test_edit_existing(self, store, fleet):
        view = DriverSetupView(store)
        view.open_edit(fleet["mary"])
        assert view.form["first_name"] == "Mary"
        view.update_form(last_name="Jones-Park")

        assert view.save() is True
        assert store.driver(fleet["mary"].driver_id).last_name == "Jones-Park"

    def test_backend_rejection_returns_to_editing(self, store, fleet):
        view = DriverSetupView(store)
        view.open_create()
        view.update_form(driver_code="X1", first_name="A", last_name="B", driver_type_id="99")

        assert view.save() is False
        assert view.state == ViewState.EDITING
        assert "Driver type 99" in view.alert

    def test_delete_needs_confirmation(self, store, fleet):
        view = DriverSetupView(store)
        view.request_delete(fleet["mary"])
        assert view.state == ViewState.DELETING
        view.cancel_delete()
        assert view.state == ViewState.BROWSING
        assert len(store.drivers) == 3

        view.request_delete(fleet["mary"])
        assert view.confirm_delete() is True
        assert view.state == ViewState.BROWSING
        assert store.driver(fleet["mary"].driver_id) is None

    def test_confirm_without_request(self, store, fleet):
        view = DriverSetupView(store)
        assert view.confirm_delete() is False

    def test_blank_start_date_is_cleared(self, store, fleet):
        view = DriverSetupView(store)
        view.open_edit(fleet["mary"])
        view.update_form(start_date="")

        assert view.save() is True
        assert view.alert is None
        assert store.driver(fleet["mary"].driver_id).start_date is None

    def test_profile_picture_limit(self, store, fleet):
        view = DriverSetupView(store)
        view.open_create()
        assert view.attach_profile_picture(b"x" * (1024 * 1024 + 1)) is False
        assert view.alert == "Image is too large. Please select an image under 1MB."
        assert view.form["profile_pic"] is None

        assert view.attach_profile_picture(b"\x89PNG", "image/png") is True
        assert view.form["profile_pic"].startswith("data:image/png;base64,")

    def test_truck_options_hide_assigned(self, store, fleet):
        store.assign_truck(fleet["al"].driver_id, fleet["truck_b"].truck_id)
        view = DriverSetupView(store)
        view.open_create()
        assert [t.unit_number for t in view.truck_options()] == ["A-100"]

        view.open_edit(store.driver(fleet["al"].driver_id))
        assert [t.unit_number for t in view.truck_options()] == ["A-100", "B-200"]

    def test_numeric_fields(self, store, fleet):
        view = SafetyCategorySetupView(store)
        view.open_create()
        view.update_form(code="C9", description="Speeding", scoring_system="-2", p_i_score="")
        assert view.save() is True
        saved = next(c for c in store.safety_categories if c.code == "C9")
        assert (saved.scoring_system, saved.p_i_score) == (-2, 0)

        view.open_create()
        view.update_form(code="C10", description="Idling", scoring_system="lots")
        assert view.save() is False
        assert view.alert == "Bonus score must be a number"

    def test_driver_type_delete(self, store, fleet):
        view = DriverTypeSetupView(store)
        view.open_create()
        view.update_form(driver_type="Owner operator")
        assert view.save() is True
        driver_type = store.driver_types[0]
        store.save_driver({"driver_code": "JS01", "first_name": "John", "last_name": "Smith",
                           "driver_type_id": driver_type.driver_type_id}, fleet["john"].driver_id)

        view.request_delete(driver_type)
        assert view.confirm_delete() is True
        assert store.driver_types == []
        assert store.driver(fleet["john"].driver_id).driver_type_id is None

    def test_metric_category_filter(self, store, fleet):
        store.save_scorecard_metric({"sc_category": "DISPATCH", "sc_description": "On time"})
        view = ScorecardSetupView(store)
        view.category_filter = "DISPATCH"
        assert [m.sc_description for m in view.items] == ["On time"]
        assert view.scope_label(view.items[0]) == "All driver types"

        view.open_create()
        assert view.form["sc_category"] == "DISPATCH"
        view.update_form(sc_category="PAYROLL", sc_description="Late forms")
        assert view.save() is False
        assert view.alert.startswith("Category must be one of")


class TestSafetyEventLog:
    """Test the event logging form."""

    def test_submit_snapshots_category(self, store, fleet):
        view = SafetyEventLogView(store)
        view.update_form(driver_id=fleet["john"].driver_id, category_id=fleet["category"].category_id,
                         notes="Roadside")
        assert view.submit() is True

        event = store.safety_events[0]
        assert (event.bonus_score, event.p_i_score, event.bonus_period) == (3, 1, True)
        assert event.event_date == local_today()
        assert view.form["driver_id"] is None
        assert [e.safety_event_id for e in view.events] == [event.safety_event_id]
        assert view.category_code(event) == "B001"
        assert view.driver_name(event) == "John Smith"

    def test_submit_requires_selection(self, store, fleet):
        view = SafetyEventLogView(store)
        view.update_form(driver_id=fleet["john"].driver_id)
        assert view.submit() is False
        assert view.alert == "Please select a driver and a category."
        assert store.safety_events == []

    def test_filters(self, store, fleet):
        for driver, day in [(fleet["john"], "2020-01-06"), (fleet["mary"], local_today().isoformat())]:
            store.save_safety_event({"driver_id": driver.driver_id,
                                     "category_id": fleet["category"].category_id, "event_date": day})
        view = SafetyEventLogView(store)
        assert [view.driver_name(e) for e in view.events] == ["Mary Jones"]

        view.clear_filters()
        assert len(view.events) == 2
        view.driver_filter = fleet["john"].driver_id
        assert [str(e.event_date) for e in view.events] == ["2020-01-06"]

        view.clear_filters()
        view.search = "jones"
        assert len(view.events) == 1

    def test_orphaned_event_display(self, store, fleet):
        store.save_safety_event({"driver_id": fleet["john"].driver_id,
                                 "category_id": fleet["category"].category_id,
                                 "event_date": local_today().isoformat()})
        store.delete_safety_category(fleet["category"].category_id)
        view = SafetyEventLogView(store)
        event = view.events[0]
        assert view.category_code(event) == "N/A"
        assert view.category_description(event) == "Unknown"

    def test_delete_flow(self, store, fleet):
        view = SafetyEventLogView(store)
        view.update_form(driver_id=fleet["john"].driver_id, category_id=fleet["category"].category_id)
        view.submit()
        event = view.events[0]

        view.request_delete(event)
        view.cancel_delete()
        assert len(store.safety_events) == 1

        view.request_delete(event)
        assert view.confirm_delete() is True
        assert store.safety_events == []


class TestScorecardView:
    """Test the monthly grading form."""

    def test_blank_session(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="SAFETY")
        assert view.scores == {fleet["pre_trip"].sc_category_id: 0, fleet["seat_belt"].sc_category_id: 0}
        assert view.has_existing_grade is False
        assert view.dirty is False

    def test_save_and_reload(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="SAFETY")
        view.set_score(fleet["pre_trip"].sc_category_id, 3)
        view.set_notes("solid")
        assert view.dirty is True

        assert view.save() is True
        assert view.dirty is False
        assert view.has_existing_grade is True

        other = ScorecardView(store)
        other.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="SAFETY")
        assert other.scores[fleet["pre_trip"].sc_category_id] == 3
        assert other.scores[fleet["seat_belt"].sc_category_id] == 0
        assert other.notes == "solid"

        stats = {s["category"]: s["completion"] for s in other.category_stats()}
        assert stats == {"SAFETY": 30, "MAINTENANCE": "N/A", "DISPATCH": "N/A"}

    def test_switching_tab_discards_edits(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="SAFETY")
        view.set_score(fleet["pre_trip"].sc_category_id, 4)

        view.select(tab="MAINTENANCE")
        assert view.scores == {}
        view.select(tab="SAFETY")
        assert view.scores[fleet["pre_trip"].sc_category_id] == 0
        assert store.scorecard_events == []

    def test_invalid_score(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03")
        assert view.set_score(fleet["pre_trip"].sc_category_id, 6) is False
        assert view.alert == "Scores range from 0 to 5."

    def test_save_refused_when_no_metrics_apply(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="DISPATCH")

        assert view.save() is False
        assert view.alert == "No metrics apply to this driver for this category."
        assert view.has_existing_grade is False
        assert store.scorecard_events == []

    def test_save_without_driver(self, store, fleet):
        view = ScorecardView(store)
        assert view.save() is False
        assert view.alert == "Select a driver first."
        assert all(s["completion"] == "---" for s in view.category_stats())

    def test_pending_then_delete(self, store, fleet):
        view = ScorecardView(store)
        view.select(driver_id=fleet["john"].driver_id, month="2025-03", tab="SAFETY")
        assert view.category_stats()[0]["completion"] == "Pending"
        view.save()
        assert view.category_stats()[0]["completion"] == 0

        view.request_delete()
        assert view.confirm_delete() is True
        assert view.has_existing_grade is False
        assert view.category_stats()[0]["completion"] == "Pending"


class TestTruckView:
    """Test fleet assignment from the truck side."""

    def test_unit_number_required(self, store, fleet):
        view = TruckView(store)
        view.open_create()
        assert view.save() is False
        assert view.alert == "Unit Number is required"

    def test_assignment_options(self, store, fleet):
        store.assign_truck(fleet["al"].driver_id, fleet["truck_b"].truck_id)
        view = TruckView(store)
        view.open_assignment(store.truck(fleet["truck_a"].truck_id))

        options = {o["driver"].driver_id: o for o in view.assignment_options()}
        assert options[fleet["al"].driver_id]["disabled"] is True
        assert options[fleet["al"].driver_id]["current_unit"] == "B-200"
        assert options[fleet["john"].driver_id]["disabled"] is False

        assert view.assign(fleet["al"].driver_id) is False
        assert view.alert == "Driver is already assigned to unit B-200"

    def test_assign_and_unassign(self, store, fleet):
        view = TruckView(store)
        truck_id = fleet["truck_a"].truck_id
        view.open_assignment(store.truck(truck_id))
        assert view.assign(fleet["john"].driver_id) is True
        assert view.assigning is None
        assert store.truck(truck_id).status == "assigned"
        assert view.driver_name(store.truck(truck_id)) == "John Smith"

        view.open_assignment(store.truck(truck_id))
        assert view.assign(None) is True
        assert store.truck(truck_id).status == "available"

        assert view.show_history(store.truck(truck_id)) is True
        assert [h.type for h in view.history] == ["status_change", "assignment"]

    def test_search_by_unit(self, store, fleet):
        view = TruckView(store)
        view.set_search("b-2")
        assert [t.unit_number for t in view.items] == ["B-200"]


class TestViewLifecycle:
    """Test that views track the store until closed."""

    def test_dashboard_follows_store(self, store, fleet):
        view = DashboardView(store)
        assert view.summary["driver_count"] == 3
        assert view.summary["average_bonus_score_display"] == "0.0"

        store.save_safety_event({"driver_id": fleet["john"].driver_id,
                                 "category_id": fleet["category"].category_id,
                                 "event_date": local_today().isoformat()})
        assert view.summary["total_events"] == 1
        assert view.summary["average_bonus_score_display"] == "3.0"
        assert view.summary["trend"]["series"][0]["code"] == "B001"

    def test_closed_view_ignores_changes(self, store, fleet):
        view = DashboardView(store)
        view.close()
        store.save_safety_event({"driver_id": fleet["john"].driver_id,
                                 "category_id": fleet["category"].category_id,
                                 "event_date": local_today().isoformat()})
        assert view.summary["total_events"] == 0

    def test_closed_view_keeps_alert_clear(self, store, fleet):
        view = DriverSetupView(store)
        view.open_create()
        view.close()
        assert view.save() is False
        assert view.alert is None
