from sqlalchemy import Column, Integer, String, Text, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base

Base = declarative_base()

TRUCK_STATUSES = ("available", "maintenance", "assigned")
SCORECARD_CATEGORIES = ("SAFETY", "MAINTENANCE", "DISPATCH")
HISTORY_TYPES = ("assignment", "maintenance", "status_change")

class Truck(Base):
    __tablename__ = "trucks"
    truck_id = Column(Integer, primary_key=True)
    unit_number = Column(String(32), nullable=False)
    year = Column(Integer)
    status = Column(String(16), nullable=False, default="available")

class DriverType(Base):
    __tablename__ = "driver_types"
    driver_type_id = Column(Integer, primary_key=True)
    driver_type = Column(String(64), nullable=False)

class Driver(Base):
    __tablename__ = "drivers"
    driver_id = Column(Integer, primary_key=True)
    driver_code = Column(String(32), nullable=False)
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128), nullable=False)
    start_date = Column(Date)
    truck_id = Column(Integer, ForeignKey("trucks.truck_id", ondelete="SET NULL"))
    driver_type_id = Column(Integer, ForeignKey("driver_types.driver_type_id", ondelete="SET NULL"))
    profile_pic = Column(Text)

class SafetyCategory(Base):
    __tablename__ = "safety_categories"
    category_id = Column(Integer, primary_key=True)
    code = Column(String(32), nullable=False)
    description = Column(String(255), nullable=False)
    scoring_system = Column(Integer, nullable=False, default=0)
    p_i_score = Column(Integer, nullable=False, default=0)

class SafetyEvent(Base):
    __tablename__ = "safety_events"
    safety_event_id = Column(Integer, primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.driver_id", ondelete="CASCADE"), nullable=False)
    event_date = Column(Date, nullable=False)
    # No constraint: events outlive the category they were logged under.
    category_id = Column(Integer, nullable=False)
    notes = Column(Text, default="")
    bonus_score = Column(Integer, nullable=False, default=0)
    p_i_score = Column(Integer, nullable=False, default=0)
    bonus_period = Column(Boolean, nullable=False, default=True)

class ScoreCardItem(Base):
    __tablename__ = "scorecard_metrics"
    sc_category_id = Column(Integer, primary_key=True)
    sc_category = Column(String(16), nullable=False)
    sc_description = Column(String(255), nullable=False)
    driver_type_id = Column(Integer, ForeignKey("driver_types.driver_type_id", ondelete="SET NULL"))

class ScoreCardEvent(Base):
    __tablename__ = "scorecard_events"
    scorecard_event_id = Column(Integer, primary_key=True)
    driver_id = Column(Integer, ForeignKey("drivers.driver_id", ondelete="CASCADE"), nullable=False)
    event_date = Column(Date, nullable=False)
    sc_category_id = Column(Integer, ForeignKey("scorecard_metrics.sc_category_id", ondelete="CASCADE"), nullable=False)
    sc_score = Column(Integer, nullable=False, default=0)
    notes = Column(Text, default="")

class TruckHistoryEvent(Base):
    __tablename__ = "truck_history"
    truck_history_id = Column(Integer, primary_key=True)
    truck_id = Column(Integer, ForeignKey("trucks.truck_id", ondelete="CASCADE"), nullable=False)
    driver_id = Column(Integer)
    date = Column(DateTime(timezone=True), nullable=False)
    type = Column(String(16), nullable=False)
    notes = Column(Text)
