from typing import Dict, List, Optional

from .base import StoreView, matches


class DriverRosterView(StoreView):
    """Read-only roster with per-driver bonus totals."""

    def __init__(self, store):
        super().__init__(store)
        self.search = ""
        self.type_filter: Optional[int] = None

    def set_search(self, term: str):
        self.search = term

    def set_type_filter(self, driver_type_id: Optional[int]):
        self.type_filter = driver_type_id

    @property
    def rows(self) -> List[Dict]:
        rows = []
        for driver in self.store.drivers:
            if self.type_filter is not None and driver.driver_type_id != self.type_filter:
                continue
            if not matches(self.search, f"{driver.first_name} {driver.last_name}", driver.driver_code):
                continue
            truck = self.store.truck(driver.truck_id)
            driver_type = self.store.driver_type(driver.driver_type_id)
            rows.append({
                "driver": driver,
                "truck": truck.unit_number if truck else "Unassigned",
                "driver_type": driver_type.driver_type if driver_type else "N/A",
                **self.store.driver_stats(driver.driver_id),
            })
        return rows
