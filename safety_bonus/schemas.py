from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TruckStatus = Literal["available", "maintenance", "assigned"]
ScorecardCategory = Literal["SAFETY", "MAINTENANCE", "DISPATCH"]
HistoryType = Literal["assignment", "maintenance", "status_change"]

MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Trucks

class TruckBase(BaseModel):
    unit_number: str = Field(min_length=1)
    year: Optional[int] = None
    status: TruckStatus = "available"

class TruckCreate(TruckBase):
    pass

class Truck(TruckBase, ORMModel):
    truck_id: int

class TruckHistoryEvent(ORMModel):
    truck_history_id: int
    truck_id: int
    driver_id: Optional[int] = None
    date: datetime
    type: HistoryType
    notes: Optional[str] = None


# Driver types

class DriverTypeBase(BaseModel):
    driver_type: str = Field(min_length=1)

class DriverTypeCreate(DriverTypeBase):
    pass

class DriverType(DriverTypeBase, ORMModel):
    driver_type_id: int


# Drivers

class DriverBase(BaseModel):
    driver_code: str = Field(min_length=1)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    start_date: Optional[date] = None
    truck_id: Optional[int] = None
    driver_type_id: Optional[int] = None
    profile_pic: Optional[str] = None

class DriverCreate(DriverBase):
    pass

class Driver(DriverBase, ORMModel):
    driver_id: int

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

class DriverStats(BaseModel):
    event_count: int
    total_bonus_score: int
    total_p_i_score: int
    status: Literal["Good", "Warning"]


# Assignment

class TruckAssignment(BaseModel):
    """Body of POST /drivers/{id}/assign-truck."""
    truck_id: Optional[int] = None

class DriverAssignment(BaseModel):
    """Body of POST /trucks/{id}/assign-driver."""
    driver_id: Optional[int] = None

class AssignmentResult(BaseModel):
    driver: Optional[Driver] = None
    trucks: List[Truck] = []


# Safety categories and events

class SafetyCategoryBase(BaseModel):
    code: str = Field(min_length=1)
    description: str = Field(min_length=1)
    scoring_system: int = 0
    p_i_score: int = 0

class SafetyCategoryCreate(SafetyCategoryBase):
    pass

class SafetyCategory(SafetyCategoryBase, ORMModel):
    category_id: int

class SafetyEventCreate(BaseModel):
    driver_id: int
    event_date: date
    category_id: int
    notes: str = ""
    # Omitted scores are copied from the category at creation time.
    bonus_score: Optional[int] = None
    p_i_score: Optional[int] = None
    bonus_period: bool = True

class SafetyEvent(ORMModel):
    safety_event_id: int
    driver_id: int
    event_date: date
    category_id: int
    notes: str = ""
    bonus_score: int
    p_i_score: int
    bonus_period: bool


# Scorecards

class ScoreCardItemBase(BaseModel):
    sc_category: ScorecardCategory
    sc_description: str = Field(min_length=1)
    driver_type_id: Optional[int] = None

class ScoreCardItemCreate(ScoreCardItemBase):
    pass

class ScoreCardItem(ScoreCardItemBase, ORMModel):
    sc_category_id: int

class ScoreCardEvent(ORMModel):
    scorecard_event_id: int
    driver_id: int
    event_date: date
    sc_category_id: int
    sc_score: int
    notes: str = ""

    @property
    def month(self) -> str:
        return self.event_date.strftime("%Y-%m")

class MetricScore(BaseModel):
    sc_category_id: int
    sc_score: int = Field(0, ge=0, le=5)

class ScorecardGrade(BaseModel):
    """One grading session for a (driver, month, category) triple."""
    notes: str = ""
    scores: List[MetricScore] = []


# Bootstrap

class Bootstrap(BaseModel):
    drivers: List[Driver] = []
    trucks: List[Truck] = []
    driver_types: List[DriverType] = []
    safety_categories: List[SafetyCategory] = []
    scorecard_metrics: List[ScoreCardItem] = []
    safety_events: List[SafetyEvent] = []
    scorecard_events: List[ScoreCardEvent] = []
