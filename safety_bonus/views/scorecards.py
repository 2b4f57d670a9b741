import logging
from typing import Dict, List, Optional

from ..client import ApiError
from ..config import local_today
from ..models import SCORECARD_CATEGORIES
from .. import stats
from .base import StoreView

logger = logging.getLogger(__name__)

SCORE_CHOICES = (0, 1, 2, 3, 4, 5)


class ScorecardView(StoreView):
    """Monthly grading session for one driver and one category tab.

    Changing the driver, month or tab reloads the form from the store and
    discards unsaved edits; ``dirty`` tells whether there are any.
    """

    def __init__(self, store):
        super().__init__(store)
        self.driver_id: Optional[int] = None
        self.month = local_today().strftime("%Y-%m")
        self.tab = "SAFETY"
        self.scores: Dict[int, int] = {}
        self.notes = ""
        self.has_existing_grade = False
        self.dirty = False
        self.pending_delete = False

    @property
    def driver(self):
        return self.store.driver(self.driver_id)

    @property
    def active_metrics(self) -> List:
        driver = self.driver
        return stats.applicable_metrics(
            self.store.scorecard_metrics, self.tab,
            driver.driver_type_id if driver else None
        )

    def select(self, driver_id: Optional[int] = None, month: Optional[str] = None,
               tab: Optional[str] = None):
        if driver_id is not None:
            self.driver_id = driver_id
        if month is not None:
            self.month = month
        if tab is not None:
            if tab not in SCORECARD_CATEGORIES:
                raise ValueError(f"Unknown scorecard category {tab}")
            self.tab = tab
        self.load()

    def load(self):
        """Fill the form from saved grades, or blank it."""
        self.dirty = False
        if self.driver_id is None:
            self.scores, self.notes, self.has_existing_grade = {}, "", False
            return

        existing = self.store.scorecard_events_for(self.driver_id, self.month, self.tab)
        scores = {m.sc_category_id: 0 for m in self.active_metrics}
        if existing:
            scores.update({e.sc_category_id: e.sc_score for e in existing})
            self.notes = existing[0].notes or ""
        else:
            self.notes = ""
        self.scores = scores
        self.has_existing_grade = bool(existing)

    def refresh(self):
        if not self.dirty:
            self.load()

    def set_score(self, sc_category_id: int, score: int) -> bool:
        if score not in SCORE_CHOICES:
            return self._fail("Scores range from 0 to 5.")
        self.scores[sc_category_id] = score
        self.dirty = True
        return True

    def set_notes(self, notes: str):
        self.notes = notes
        self.dirty = True

    def save(self) -> bool:
        """Replace the saved grades for this driver, month and tab."""
        if self.driver_id is None:
            return self._fail("Select a driver first.")
        active = self.active_metrics
        if not active:
            return self._fail("No metrics apply to this driver for this category.")
        scores = {m.sc_category_id: self.scores.get(m.sc_category_id, 0) for m in active}
        try:
            self.store.save_scorecard(self.driver_id, self.month, self.tab, scores, self.notes)
        except ApiError as exc:
            logger.warning("Saving scorecard failed: %s", exc)
            return self._fail(exc.message)
        if not self.closed:
            self.has_existing_grade = True
            self.dirty = False
            self.alert = None
        return True

    def request_delete(self):
        self.pending_delete = True

    def cancel_delete(self):
        self.pending_delete = False

    def confirm_delete(self) -> bool:
        if not self.pending_delete or self.driver_id is None:
            return False
        self.pending_delete = False
        try:
            self.store.delete_scorecard(self.driver_id, self.month, self.tab)
        except ApiError as exc:
            return self._fail(exc.message)
        if not self.closed:
            self.load()
        return True

    def category_stats(self) -> List[Dict]:
        """Completion for every tab of the selected driver and month."""
        driver = self.driver
        results = []
        for category in SCORECARD_CATEGORIES:
            if driver is None or not self.month:
                completion = "---"
            else:
                completion = stats.scorecard_completion(
                    self.store.scorecard_metrics, self.store.scorecard_events,
                    driver.driver_id, driver.driver_type_id, self.month, category
                )
            results.append({"category": category, "completion": completion})
        return results
