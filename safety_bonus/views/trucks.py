import logging
from typing import Dict, List, Optional

from ..client import ApiError
from .base import CrudView

logger = logging.getLogger(__name__)


class TruckView(CrudView):
    """Fleet list plus the assignment modal and the read-only history panel."""

    key = "truck_id"
    required_fields = ("unit_number",)
    required_message = "Unit Number is required"
    numeric_fields = {"year": ("Year", None)}
    delete_prompt = "Permanently remove this unit from the fleet database?"

    def __init__(self, store):
        super().__init__(store)
        self.assigning = None
        self.history_truck = None
        self.history: List = []

    def records(self):
        return self.store.trucks

    def search_fields(self, truck):
        return (truck.unit_number, self.driver_name(truck))

    def blank_form(self):
        return {"unit_number": "", "year": None, "status": "available"}

    def persist(self, data, pk):
        return self.store.save_truck(data, pk)

    def remove(self, pk):
        self.store.delete_truck(pk)

    def driver_name(self, truck) -> str:
        driver = self.store.truck_holder(truck.truck_id)
        return f"{driver.first_name} {driver.last_name}" if driver else ""

    # Assignment

    def open_assignment(self, truck):
        self.assigning = truck
        self.alert = None

    def close_assignment(self):
        self.assigning = None

    def assignment_options(self) -> List[Dict]:
        """Every driver; those holding another truck are disabled with their unit shown."""
        truck_id = self.assigning.truck_id if self.assigning is not None else None
        options = []
        for driver in self.store.drivers:
            elsewhere = driver.truck_id is not None and driver.truck_id != truck_id
            current = self.store.truck(driver.truck_id)
            options.append({
                "driver": driver,
                "disabled": elsewhere,
                "current_unit": current.unit_number if elsewhere and current else None,
            })
        return options

    def assign(self, driver_id: Optional[int]) -> bool:
        """Link driver_id to the open truck, or unassign it with None."""
        if self.assigning is None:
            return False
        truck_id = self.assigning.truck_id
        try:
            if driver_id is None:
                self.store.assign_driver(truck_id, None)
            else:
                option = next((o for o in self.assignment_options()
                               if o["driver"].driver_id == driver_id), None)
                if option is None:
                    return self._fail(f"Driver {driver_id} not found")
                if option["disabled"]:
                    return self._fail(f"Driver is already assigned to unit {option['current_unit']}")
                self.store.assign_truck(driver_id, truck_id)
        except ApiError as exc:
            logger.warning("Assignment of truck %s failed: %s", truck_id, exc)
            return self._fail(exc.message)

        if not self.closed:
            self.assigning = None
        return True

    # History

    def show_history(self, truck) -> bool:
        try:
            history = self.store.truck_history(truck.truck_id)
        except ApiError as exc:
            return self._fail(exc.message)
        if self.closed:
            return True
        self.history_truck = truck
        self.history = history
        return True
