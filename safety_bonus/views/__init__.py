from .base import CrudView, FormValidationError, StoreView, ViewState, matches
from .dashboard import DashboardView
from .roster import DriverRosterView
from .safety_events import SafetyEventLogView
from .scorecards import ScorecardView
from .setup import DriverSetupView, DriverTypeSetupView, SafetyCategorySetupView, ScorecardSetupView
from .trucks import TruckView

__all__ = [
    "CrudView", "FormValidationError", "StoreView", "ViewState", "matches",
    "DashboardView", "DriverRosterView", "SafetyEventLogView", "ScorecardView",
    "DriverSetupView", "DriverTypeSetupView", "SafetyCategorySetupView",
    "ScorecardSetupView", "TruckView",
]
