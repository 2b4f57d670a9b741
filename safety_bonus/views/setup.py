"""Setup screens: drivers, driver types, safety categories, scorecard metrics."""
import base64
from typing import Any, Dict, List, Optional

from ..config import config, local_today
from ..models import SCORECARD_CATEGORIES
from .base import CrudView, FormValidationError


class DriverSetupView(CrudView):
    key = "driver_id"
    required_fields = ("driver_code", "first_name", "last_name")
    numeric_fields = {
        "truck_id": ("Truck", None),
        "driver_type_id": ("Driver type", None),
    }
    delete_prompt = ("Permanently delete this driver? All safety events and scorecards "
                     "linked to this driver will also be removed.")

    def records(self):
        return self.store.drivers

    def search_fields(self, driver):
        return (f"{driver.first_name} {driver.last_name}", driver.driver_code)

    def blank_form(self) -> Dict[str, Any]:
        return {
            "driver_code": "",
            "first_name": "",
            "last_name": "",
            "start_date": local_today().isoformat(),
            "truck_id": None,
            "driver_type_id": None,
            "profile_pic": None,
        }

    def validate(self):
        data = super().validate()
        start_date = data.get("start_date")
        if isinstance(start_date, str) and not start_date.strip():
            data["start_date"] = None
        return data

    def persist(self, data, pk):
        return self.store.save_driver(data, pk)

    def remove(self, pk):
        self.store.delete_driver(pk)

    def attach_profile_picture(self, content: bytes, media_type: str = "image/png") -> bool:
        """Embed an uploaded picture in the form as a data URL."""
        if len(content) > config.max_profile_pic_bytes:
            return self._fail("Image is too large. Please select an image under 1MB.")
        encoded = base64.b64encode(content).decode("ascii")
        self.form["profile_pic"] = f"data:{media_type};base64,{encoded}"
        return True

    def truck_options(self, search: str = "") -> List:
        """Trucks that are free, plus the one the edited driver already holds."""
        current = self.editing.truck_id if self.editing is not None else None
        needle = search.strip().lower()
        return [
            t for t in self.store.trucks
            if (t.status != "assigned" or t.truck_id == current)
            and needle in t.unit_number.lower()
        ]

    def truck_label(self, driver) -> str:
        truck = self.store.truck(driver.truck_id)
        return truck.unit_number if truck else "Unassigned"

    def driver_type_label(self, driver) -> str:
        driver_type = self.store.driver_type(driver.driver_type_id)
        return driver_type.driver_type if driver_type else "N/A"


class DriverTypeSetupView(CrudView):
    key = "driver_type_id"
    required_fields = ("driver_type",)
    required_message = "Driver type name is required."
    delete_prompt = "Delete this driver type? Drivers and metrics using it become unclassified."

    def records(self):
        return self.store.driver_types

    def search_fields(self, driver_type):
        return (driver_type.driver_type,)

    def blank_form(self):
        return {"driver_type": ""}

    def persist(self, data, pk):
        return self.store.save_driver_type(data, pk)

    def remove(self, pk):
        self.store.delete_driver_type(pk)


class SafetyCategorySetupView(CrudView):
    key = "category_id"
    required_fields = ("code", "description")
    required_message = "Code and description are required."
    numeric_fields = {
        "scoring_system": ("Bonus score", 0),
        "p_i_score": ("P&I score", 0),
    }
    delete_prompt = "Delete this category? Events already logged under it are kept."

    def records(self):
        return self.store.safety_categories

    def search_fields(self, category):
        return (category.code, category.description)

    def blank_form(self):
        return {"code": "", "description": "", "scoring_system": 0, "p_i_score": 0}

    def persist(self, data, pk):
        return self.store.save_safety_category(data, pk)

    def remove(self, pk):
        self.store.delete_safety_category(pk)


class ScorecardSetupView(CrudView):
    key = "sc_category_id"
    required_fields = ("sc_description",)
    required_message = "Metric description is required."
    numeric_fields = {"driver_type_id": ("Driver type", None)}
    delete_prompt = "Delete this metric? Grades recorded against it are removed."

    def __init__(self, store):
        super().__init__(store)
        self.category_filter: Optional[str] = None

    def records(self):
        return [
            m for m in self.store.scorecard_metrics
            if self.category_filter is None or m.sc_category == self.category_filter
        ]

    def search_fields(self, metric):
        return (metric.sc_description, metric.sc_category)

    def blank_form(self):
        return {
            "sc_category": self.category_filter or "SAFETY",
            "sc_description": "",
            "driver_type_id": None,
        }

    def validate(self):
        data = super().validate()
        if data.get("sc_category") not in SCORECARD_CATEGORIES:
            raise FormValidationError("Category must be one of " + ", ".join(SCORECARD_CATEGORIES))
        return data

    def persist(self, data, pk):
        return self.store.save_scorecard_metric(data, pk)

    def remove(self, pk):
        self.store.delete_scorecard_metric(pk)

    def scope_label(self, metric) -> str:
        if metric.driver_type_id is None:
            return "All driver types"
        driver_type = self.store.driver_type(metric.driver_type_id)
        return driver_type.driver_type if driver_type else "Unknown"
