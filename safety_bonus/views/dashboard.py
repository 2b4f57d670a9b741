from datetime import date
from typing import Dict, Optional

from .. import stats
from .base import StoreView


class DashboardView(StoreView):
    """Aggregates recomputed on every store change."""

    def __init__(self, store, today: Optional[date] = None):
        self.today = today
        self.summary: Dict = {}
        super().__init__(store)
        self.refresh()

    def refresh(self):
        self.summary = stats.dashboard_summary(
            self.store.drivers, self.store.trucks,
            self.store.safety_events, self.store.safety_categories,
            today=self.today
        )
