"""In-memory mirror of the backend records, shared by every view.

The store holds one ``schemas.Bootstrap`` snapshot. Mutations go to the API
first; only after the backend confirms does the store patch the changed
record from the response, or re-fetch the whole snapshot when the change
touches more than one collection. Each state change notifies subscribers
synchronously. Failed requests raise ``ApiError`` and leave state untouched.
"""
import logging
from typing import Callable, Dict, List, Optional

from .. import schemas, stats
from .http import ApiClient

logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class FleetStore:

    def __init__(self, api: Optional[ApiClient] = None):
        self.api = api or ApiClient()
        self.state = schemas.Bootstrap()
        self._listeners: List[Listener] = []

    # Subscription

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that removes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            listener()

    def _set(self, **collections):
        self.state = self.state.model_copy(update=collections)
        self._notify()

    def _replace(self, collection: str, key: str, record):
        items = getattr(self.state, collection)
        pk = getattr(record, key)
        if any(getattr(item, key) == pk for item in items):
            items = [record if getattr(item, key) == pk else item for item in items]
        else:
            items = items + [record]
        self._set(**{collection: items})

    def _remove(self, collection: str, key: str, pk: int):
        items = [item for item in getattr(self.state, collection) if getattr(item, key) != pk]
        self._set(**{collection: items})

    # Snapshot

    def init(self):
        """Fetch every collection and replace local state wholesale."""
        data = self.api.get("/bootstrap")
        self.state = schemas.Bootstrap.model_validate(data or {})
        logger.debug("Store refreshed: %d drivers, %d trucks, %d safety events",
                     len(self.state.drivers), len(self.state.trucks), len(self.state.safety_events))
        self._notify()

    @property
    def drivers(self) -> List[schemas.Driver]:
        return self.state.drivers

    @property
    def trucks(self) -> List[schemas.Truck]:
        return self.state.trucks

    @property
    def driver_types(self) -> List[schemas.DriverType]:
        return self.state.driver_types

    @property
    def safety_categories(self) -> List[schemas.SafetyCategory]:
        return self.state.safety_categories

    @property
    def scorecard_metrics(self) -> List[schemas.ScoreCardItem]:
        return self.state.scorecard_metrics

    @property
    def safety_events(self) -> List[schemas.SafetyEvent]:
        return self.state.safety_events

    @property
    def scorecard_events(self) -> List[schemas.ScoreCardEvent]:
        return self.state.scorecard_events

    # Lookups

    def driver(self, driver_id: Optional[int]) -> Optional[schemas.Driver]:
        return next((d for d in self.drivers if d.driver_id == driver_id), None)

    def truck(self, truck_id: Optional[int]) -> Optional[schemas.Truck]:
        return next((t for t in self.trucks if t.truck_id == truck_id), None)

    def driver_type(self, driver_type_id: Optional[int]) -> Optional[schemas.DriverType]:
        return next((t for t in self.driver_types if t.driver_type_id == driver_type_id), None)

    def safety_category(self, category_id: Optional[int]) -> Optional[schemas.SafetyCategory]:
        return next((c for c in self.safety_categories if c.category_id == category_id), None)

    def scorecard_metric(self, sc_category_id: Optional[int]) -> Optional[schemas.ScoreCardItem]:
        return next((m for m in self.scorecard_metrics if m.sc_category_id == sc_category_id), None)

    def truck_holder(self, truck_id: int) -> Optional[schemas.Driver]:
        return next((d for d in self.drivers if d.truck_id == truck_id), None)

    def scorecard_events_for(self, driver_id: int, month: str, category: str) -> List[schemas.ScoreCardEvent]:
        return stats.session_events(self.scorecard_events, self.scorecard_metrics,
                                    driver_id, month, category)

    # Drivers

    def save_driver(self, data: Dict, driver_id: Optional[int] = None) -> schemas.Driver:
        payload = schemas.DriverCreate.model_validate(data).model_dump(mode="json")
        previous = self.driver(driver_id)
        if driver_id is None:
            saved = schemas.Driver.model_validate(self.api.post("/drivers", payload))
        else:
            saved = schemas.Driver.model_validate(self.api.put(f"/drivers/{driver_id}", payload))

        previous_truck = previous.truck_id if previous else None
        if saved.truck_id != previous_truck:
            # The backend also changed truck rows.
            self.init()
        else:
            self._replace("drivers", "driver_id", saved)
        return saved

    def delete_driver(self, driver_id: int):
        """Delete a driver; their events and truck assignment go with them."""
        self.api.delete(f"/drivers/{driver_id}")
        self.init()

    def assign_truck(self, driver_id: int, truck_id: Optional[int]) -> schemas.AssignmentResult:
        """Assign driver to truck, or unassign with None, then re-fetch."""
        result = self.api.post(f"/drivers/{driver_id}/assign-truck", {"truck_id": truck_id})
        self.init()
        return schemas.AssignmentResult.model_validate(result)

    def assign_driver(self, truck_id: int, driver_id: Optional[int]) -> schemas.AssignmentResult:
        """Truck-side assignment; None frees the truck."""
        result = self.api.post(f"/trucks/{truck_id}/assign-driver", {"driver_id": driver_id})
        self.init()
        return schemas.AssignmentResult.model_validate(result)

    def driver_stats(self, driver_id: int) -> Dict:
        return stats.driver_stats(driver_id, self.safety_events)

    # Trucks

    def save_truck(self, data: Dict, truck_id: Optional[int] = None) -> schemas.Truck:
        payload = schemas.TruckCreate.model_validate(data).model_dump(mode="json")
        if truck_id is None:
            saved = schemas.Truck.model_validate(self.api.post("/trucks", payload))
        else:
            saved = schemas.Truck.model_validate(self.api.put(f"/trucks/{truck_id}", payload))
        self._replace("trucks", "truck_id", saved)
        return saved

    def delete_truck(self, truck_id: int):
        held = self.truck_holder(truck_id) is not None
        self.api.delete(f"/trucks/{truck_id}")
        if held:
            self.init()
        else:
            self._remove("trucks", "truck_id", truck_id)

    def truck_history(self, truck_id: int) -> List[schemas.TruckHistoryEvent]:
        """Fetched on demand; history is not part of the snapshot."""
        rows = self.api.get(f"/trucks/{truck_id}/history") or []
        return [schemas.TruckHistoryEvent.model_validate(row) for row in rows]

    # Driver types

    def save_driver_type(self, data: Dict, driver_type_id: Optional[int] = None) -> schemas.DriverType:
        payload = schemas.DriverTypeCreate.model_validate(data).model_dump(mode="json")
        if driver_type_id is None:
            saved = schemas.DriverType.model_validate(self.api.post("/driver-types", payload))
        else:
            saved = schemas.DriverType.model_validate(
                self.api.put(f"/driver-types/{driver_type_id}", payload))
        self._replace("driver_types", "driver_type_id", saved)
        return saved

    def delete_driver_type(self, driver_type_id: int):
        referenced = any(d.driver_type_id == driver_type_id for d in self.drivers) or any(
            m.driver_type_id == driver_type_id for m in self.scorecard_metrics)
        self.api.delete(f"/driver-types/{driver_type_id}")
        if referenced:
            self.init()
        else:
            self._remove("driver_types", "driver_type_id", driver_type_id)

    # Safety categories

    def save_safety_category(self, data: Dict, category_id: Optional[int] = None) -> schemas.SafetyCategory:
        payload = schemas.SafetyCategoryCreate.model_validate(data).model_dump(mode="json")
        if category_id is None:
            saved = schemas.SafetyCategory.model_validate(self.api.post("/safety-categories", payload))
        else:
            saved = schemas.SafetyCategory.model_validate(
                self.api.put(f"/safety-categories/{category_id}", payload))
        self._replace("safety_categories", "category_id", saved)
        return saved

    def delete_safety_category(self, category_id: int):
        """Events logged under the category keep pointing at it."""
        self.api.delete(f"/safety-categories/{category_id}")
        self._remove("safety_categories", "category_id", category_id)

    # Safety events

    def save_safety_event(self, data: Dict, safety_event_id: Optional[int] = None) -> schemas.SafetyEvent:
        payload = schemas.SafetyEventCreate.model_validate(data).model_dump(mode="json")
        if safety_event_id is None:
            saved = schemas.SafetyEvent.model_validate(self.api.post("/safety-events", payload))
        else:
            saved = schemas.SafetyEvent.model_validate(
                self.api.put(f"/safety-events/{safety_event_id}", payload))
        self._replace("safety_events", "safety_event_id", saved)
        return saved

    def delete_safety_event(self, safety_event_id: int):
        self.api.delete(f"/safety-events/{safety_event_id}")
        self._remove("safety_events", "safety_event_id", safety_event_id)

    # Scorecard metrics

    def save_scorecard_metric(self, data: Dict, sc_category_id: Optional[int] = None) -> schemas.ScoreCardItem:
        payload = schemas.ScoreCardItemCreate.model_validate(data).model_dump(mode="json")
        if sc_category_id is None:
            saved = schemas.ScoreCardItem.model_validate(self.api.post("/scorecard-metrics", payload))
        else:
            saved = schemas.ScoreCardItem.model_validate(
                self.api.put(f"/scorecard-metrics/{sc_category_id}", payload))
        self._replace("scorecard_metrics", "sc_category_id", saved)
        return saved

    def delete_scorecard_metric(self, sc_category_id: int):
        graded = any(e.sc_category_id == sc_category_id for e in self.scorecard_events)
        self.api.delete(f"/scorecard-metrics/{sc_category_id}")
        if graded:
            self.init()
        else:
            self._remove("scorecard_metrics", "sc_category_id", sc_category_id)

    # Scorecard grading

    def save_scorecard(self, driver_id: int, month: str, category: str,
                       scores: Dict[int, int], notes: str = "") -> List[schemas.ScoreCardEvent]:
        """Replace every grade of a (driver, month, category) triple."""
        body = schemas.ScorecardGrade(
            notes=notes,
            scores=[{"sc_category_id": metric_id, "sc_score": score} for metric_id, score in scores.items()],
        ).model_dump(mode="json")
        rows = self.api.put(f"/scorecards/{driver_id}/{month}/{category}", body) or []
        saved = [schemas.ScoreCardEvent.model_validate(row) for row in rows]
        self._set(scorecard_events=self._without_session(driver_id, month, category) + saved)
        return saved

    def delete_scorecard(self, driver_id: int, month: str, category: str):
        self.api.delete(f"/scorecards/{driver_id}/{month}/{category}")
        self._set(scorecard_events=self._without_session(driver_id, month, category))

    def _without_session(self, driver_id: int, month: str, category: str) -> List[schemas.ScoreCardEvent]:
        stale = {e.scorecard_event_id for e in self.scorecard_events_for(driver_id, month, category)}
        return [e for e in self.scorecard_events if e.scorecard_event_id not in stale]
