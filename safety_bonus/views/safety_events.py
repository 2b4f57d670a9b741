import logging
from datetime import timedelta
from typing import Dict, List, Optional

from pydantic import ValidationError

from ..client import ApiError
from ..config import local_today
from .. import stats
from .base import StoreView, error_message, matches

logger = logging.getLogger(__name__)


class SafetyEventLogView(StoreView):
    """Logging form and event list for safety violations."""

    def __init__(self, store):
        super().__init__(store)
        self.search = ""
        self.form: Dict = {}
        self.pending_delete = None
        self.reset_filters()
        self.reset_form()

    def reset_filters(self):
        """Back to all drivers over the last three months."""
        today = local_today()
        self.driver_filter: Optional[int] = None
        self.start_date: Optional[str] = (today - timedelta(days=90)).isoformat()
        self.end_date: Optional[str] = today.isoformat()

    def clear_filters(self):
        self.driver_filter = None
        self.start_date = None
        self.end_date = None

    def reset_form(self):
        self.form = {
            "driver_id": None,
            "category_id": None,
            "event_date": local_today().isoformat(),
            "notes": "",
        }

    def update_form(self, **values):
        self.form.update(values)

    @property
    def events(self) -> List:
        """Logged events, newest first, narrowed by the filters and search term."""
        ordered = sorted(self.store.safety_events,
                         key=lambda e: (str(e.event_date), e.safety_event_id), reverse=True)
        return [
            e for e in ordered
            if (self.driver_filter is None or e.driver_id == self.driver_filter)
            and (not self.start_date or str(e.event_date) >= self.start_date)
            and (not self.end_date or str(e.event_date) <= self.end_date)
            and matches(self.search, self.driver_name(e), self.category_code(e), e.notes)
        ]

    def driver_name(self, event) -> str:
        return stats.driver_name(self.store.drivers, event.driver_id)

    def category_code(self, event) -> str:
        category = self.store.safety_category(event.category_id)
        return category.code if category else "N/A"

    def category_description(self, event) -> str:
        category = self.store.safety_category(event.category_id)
        return category.description if category else "Unknown"

    def submit(self) -> bool:
        """Log the event with the category's current scores frozen onto it."""
        driver_id = self.form.get("driver_id")
        category_id = self.form.get("category_id")
        if not driver_id or not category_id:
            return self._fail("Please select a driver and a category.")
        category = self.store.safety_category(int(category_id))
        if category is None:
            return self._fail("Selected category no longer exists.")

        record = {
            "driver_id": int(driver_id),
            "category_id": category.category_id,
            "event_date": self.form.get("event_date") or local_today().isoformat(),
            "notes": self.form.get("notes") or "",
            "bonus_score": category.scoring_system,
            "p_i_score": category.p_i_score,
            "bonus_period": True,
        }
        try:
            self.store.save_safety_event(record)
        except (ApiError, ValidationError) as exc:
            logger.warning("Logging safety event failed: %s", exc)
            return self._fail(f"Failed to save safety event. {error_message(exc)}")

        if not self.closed:
            self.reset_form()
            self.alert = None
        return True

    def request_delete(self, event):
        self.pending_delete = event

    def cancel_delete(self):
        self.pending_delete = None

    def confirm_delete(self) -> bool:
        event = self.pending_delete
        if event is None:
            return False
        try:
            self.store.delete_safety_event(event.safety_event_id)
        except ApiError as exc:
            self.pending_delete = None
            return self._fail(f"Failed to delete event. {exc.message}")
        self.pending_delete = None
        return True
