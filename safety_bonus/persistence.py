import logging
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import config, local_now
from .models import (
    Driver,
    DriverType,
    SafetyCategory,
    SafetyEvent,
    ScoreCardEvent,
    ScoreCardItem,
    Truck,
    TruckHistoryEvent,
)

logger = logging.getLogger(__name__)


class RecordNotFound(LookupError):
    """The addressed record does not exist."""

class InvalidReference(ValueError):
    """A write points at a row that does not exist."""

class AssignmentConflict(ValueError):
    """A truck status change would break the driver/truck assignment invariant."""


def month_bounds(month: str) -> Tuple[date, date]:
    """Return [first day, first day of next month) for a YYYY-MM string."""
    year, mon = (int(part) for part in month.split("-"))
    start = date(year, mon, 1)
    end = date(year + 1, 1, 1) if mon == 12 else date(year, mon + 1, 1)
    return start, end


def _get(db: Session, model, pk: int, label: str):
    """Fetch a row by primary key or raise RecordNotFound."""
    record = db.get(model, pk)
    if record is None:
        raise RecordNotFound(f"{label} {pk} not found")
    return record

def _check_reference(db: Session, model, pk: Optional[int], label: str):
    """Return the referenced row, None for a null reference, or raise InvalidReference."""
    if pk is None:
        return None
    record = db.get(model, pk)
    if record is None:
        raise InvalidReference(f"{label} {pk} does not exist")
    return record

def _apply(record, data: Dict):
    """Copy the given fields onto an ORM row."""
    for key, value in data.items():
        setattr(record, key, value)

def _list(db: Session, model) -> List:
    """All rows of a model in primary-key order."""
    pk = model.__mapper__.primary_key[0]
    return db.query(model).order_by(pk).all()


def get_bootstrap(db: Session) -> Dict[str, List]:
    """Every collection the dashboard client mirrors, in one payload."""
    return {
        "drivers": _list(db, Driver),
        "trucks": _list(db, Truck),
        "driver_types": _list(db, DriverType),
        "safety_categories": _list(db, SafetyCategory),
        "scorecard_metrics": _list(db, ScoreCardItem),
        "safety_events": _list(db, SafetyEvent),
        "scorecard_events": _list(db, ScoreCardEvent),
    }

def list_drivers(db: Session) -> List[Driver]:
    """All drivers."""
    return _list(db, Driver)

def list_trucks(db: Session) -> List[Truck]:
    """All trucks."""
    return _list(db, Truck)

def list_driver_types(db: Session) -> List[DriverType]:
    """All driver types."""
    return _list(db, DriverType)

def list_safety_categories(db: Session) -> List[SafetyCategory]:
    """All safety categories."""
    return _list(db, SafetyCategory)

def list_scorecard_metrics(db: Session) -> List[ScoreCardItem]:
    """All scorecard metrics."""
    return _list(db, ScoreCardItem)

def list_safety_events(db: Session) -> List[SafetyEvent]:
    """All safety events."""
    return db.query(SafetyEvent).order_by(
        SafetyEvent.event_date.desc(), SafetyEvent.safety_event_id.desc()
    ).all()

def list_scorecard_events(db: Session) -> List[ScoreCardEvent]:
    """All scorecard grade rows."""
    return _list(db, ScoreCardEvent)


# Truck history and assignment

def _log_history(db: Session, truck: Truck, driver_id: Optional[int], event_type: str, notes: str):
    """Append a truck history entry stamped with the local time."""
    db.add(TruckHistoryEvent(
        truck_id=truck.truck_id,
        driver_id=driver_id,
        date=local_now(),
        type=event_type,
        notes=notes
    ))

def _assign(db: Session, driver: Driver, truck_id: Optional[int]) -> List[Truck]:
    """Point driver at truck_id (or nothing) and fix up both trucks' status.

    Does not commit. Returns the trucks whose status changed.
    """
    truck = _check_reference(db, Truck, truck_id, "Truck")
    changed: Dict[int, Truck] = {}
    previous_id = driver.truck_id

    if previous_id == truck_id:
        if truck is not None and truck.status != "assigned":
            truck.status = "assigned"
            changed[truck.truck_id] = truck
        return list(changed.values())

    if previous_id is not None:
        previous = db.get(Truck, previous_id)
        if previous is not None:
            previous.status = "available"
            _log_history(db, previous, None, "status_change",
                         f"Unassigned driver ID {driver.driver_id}")
            changed[previous.truck_id] = previous

    if truck is not None:
        holders = db.query(Driver).filter(
            Driver.truck_id == truck.truck_id,
            Driver.driver_id != driver.driver_id
        ).all()
        for holder in holders:
            logger.info("Unlinking driver %s from truck %s", holder.driver_id, truck.truck_id)
            holder.truck_id = None
        driver.truck_id = truck.truck_id
        truck.status = "assigned"
        _log_history(db, truck, driver.driver_id, "assignment",
                     f"Assigned driver ID {driver.driver_id}")
        changed[truck.truck_id] = truck
    else:
        driver.truck_id = None

    db.flush()
    return list(changed.values())

def assign_truck(db: Session, driver_id: int, truck_id: Optional[int]) -> Tuple[Driver, List[Truck]]:
    """Assign a driver to a truck, or unassign with truck_id=None, atomically."""
    driver = _get(db, Driver, driver_id, "Driver")
    changed = _assign(db, driver, truck_id)
    db.commit()
    db.refresh(driver)
    for truck in changed:
        db.refresh(truck)
    logger.info("Driver %s assigned to truck %s", driver_id, truck_id)
    return driver, changed

def assign_driver(db: Session, truck_id: int, driver_id: Optional[int]) -> Tuple[Optional[Driver], List[Truck]]:
    """Truck-side assignment: link driver_id to the truck, or free it with None."""
    truck = _get(db, Truck, truck_id, "Truck")
    if driver_id is not None:
        _check_reference(db, Driver, driver_id, "Driver")
        return assign_truck(db, driver_id, truck_id)

    holder = db.query(Driver).filter(Driver.truck_id == truck_id).first()
    if holder is not None:
        return assign_truck(db, holder.driver_id, None)

    if truck.status == "assigned":
        truck.status = "available"
        _log_history(db, truck, None, "status_change", "Unassigned driver")
        db.commit()
        db.refresh(truck)
        return None, [truck]
    return None, []

def get_truck_history(db: Session, truck_id: int) -> List[TruckHistoryEvent]:
    """Audit trail for one truck, newest first."""
    _get(db, Truck, truck_id, "Truck")
    return db.query(TruckHistoryEvent).filter(
        TruckHistoryEvent.truck_id == truck_id
    ).order_by(
        TruckHistoryEvent.date.desc(), TruckHistoryEvent.truck_history_id.desc()
    ).all()


# Drivers

def create_driver(db: Session, data: Dict) -> Driver:
    """Create a driver, assigning the truck in the same transaction."""
    data = dict(data)
    truck_id = data.pop("truck_id", None)
    _check_reference(db, DriverType, data.get("driver_type_id"), "Driver type")

    driver = Driver(**data)
    db.add(driver)
    db.flush()
    if truck_id is not None:
        _assign(db, driver, truck_id)
    db.commit()
    db.refresh(driver)
    return driver

def update_driver(db: Session, driver_id: int, data: Dict) -> Driver:
    """Update a driver; a changed truck_id goes through assignment."""
    driver = _get(db, Driver, driver_id, "Driver")
    data = dict(data)
    truck_id = data.pop("truck_id", driver.truck_id)
    _check_reference(db, DriverType, data.get("driver_type_id"), "Driver type")

    _apply(driver, data)
    if truck_id != driver.truck_id:
        _assign(db, driver, truck_id)
    db.commit()
    db.refresh(driver)
    return driver

def delete_driver(db: Session, driver_id: int) -> None:
    """Delete a driver with their safety and scorecard events; frees their truck."""
    driver = _get(db, Driver, driver_id, "Driver")
    if driver.truck_id is not None:
        _assign(db, driver, None)

    events = db.query(SafetyEvent).filter(SafetyEvent.driver_id == driver_id).delete()
    grades = db.query(ScoreCardEvent).filter(ScoreCardEvent.driver_id == driver_id).delete()
    db.delete(driver)
    db.commit()
    logger.info("Deleted driver %s with %d safety events and %d scorecard events",
                driver_id, events, grades)

def get_driver_stats(db: Session, driver_id: int) -> Dict:
    """Event count, score totals and warning status for one driver."""
    _get(db, Driver, driver_id, "Driver")
    count, total_bonus, total_pi = db.query(
        func.count(SafetyEvent.safety_event_id),
        func.coalesce(func.sum(SafetyEvent.bonus_score), 0),
        func.coalesce(func.sum(SafetyEvent.p_i_score), 0)
    ).filter(SafetyEvent.driver_id == driver_id).one()

    return {
        "event_count": count,
        "total_bonus_score": total_bonus,
        "total_p_i_score": total_pi,
        "status": "Warning" if total_bonus > config.driver_warning_threshold else "Good"
    }


# Trucks

def create_truck(db: Session, data: Dict) -> Truck:
    """Add a truck to the fleet."""
    if data.get("status") == "assigned":
        raise AssignmentConflict("A new truck cannot start out assigned; assign a driver instead")
    truck = Truck(**data)
    db.add(truck)
    db.commit()
    db.refresh(truck)
    return truck

def update_truck(db: Session, truck_id: int, data: Dict) -> Truck:
    """Update a truck, logging status changes to its history."""
    truck = _get(db, Truck, truck_id, "Truck")
    status = data.get("status", truck.status)
    held = db.query(Driver).filter(Driver.truck_id == truck_id).first() is not None

    if held and status != "assigned":
        raise AssignmentConflict(f"Truck {truck_id} has a driver; unassign the driver first")
    if not held and status == "assigned":
        raise AssignmentConflict(f"Truck {truck_id} has no driver; assign a driver instead")

    if status != truck.status:
        event_type = "maintenance" if status == "maintenance" else "status_change"
        _log_history(db, truck, None, event_type, f"Status changed from {truck.status} to {status}")
    _apply(truck, data)
    db.commit()
    db.refresh(truck)
    return truck

def delete_truck(db: Session, truck_id: int) -> None:
    """Delete a truck, unlinking its driver and dropping its history."""
    truck = _get(db, Truck, truck_id, "Truck")
    db.query(Driver).filter(Driver.truck_id == truck_id).update(
        {Driver.truck_id: None}, synchronize_session=False
    )
    db.query(TruckHistoryEvent).filter(TruckHistoryEvent.truck_id == truck_id).delete()
    db.delete(truck)
    db.commit()
    logger.info("Deleted truck %s", truck_id)


# Driver types

def create_driver_type(db: Session, data: Dict) -> DriverType:
    """Create a driver type."""
    driver_type = DriverType(**data)
    db.add(driver_type)
    db.commit()
    db.refresh(driver_type)
    return driver_type

def update_driver_type(db: Session, driver_type_id: int, data: Dict) -> DriverType:
    """Rename a driver type."""
    driver_type = _get(db, DriverType, driver_type_id, "Driver type")
    _apply(driver_type, data)
    db.commit()
    db.refresh(driver_type)
    return driver_type

def delete_driver_type(db: Session, driver_type_id: int) -> None:
    """Delete a driver type; drivers and metrics using it become unclassified."""
    driver_type = _get(db, DriverType, driver_type_id, "Driver type")
    db.query(Driver).filter(Driver.driver_type_id == driver_type_id).update(
        {Driver.driver_type_id: None}, synchronize_session=False
    )
    db.query(ScoreCardItem).filter(ScoreCardItem.driver_type_id == driver_type_id).update(
        {ScoreCardItem.driver_type_id: None}, synchronize_session=False
    )
    db.delete(driver_type)
    db.commit()


# Safety categories

def create_safety_category(db: Session, data: Dict) -> SafetyCategory:
    """Create a safety category."""
    category = SafetyCategory(**data)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category

def update_safety_category(db: Session, category_id: int, data: Dict) -> SafetyCategory:
    """Update a safety category; logged events keep their snapshot scores."""
    category = _get(db, SafetyCategory, category_id, "Safety category")
    _apply(category, data)
    db.commit()
    db.refresh(category)
    return category

def delete_safety_category(db: Session, category_id: int) -> None:
    """Delete a category. Events logged under it keep the dangling category_id."""
    category = _get(db, SafetyCategory, category_id, "Safety category")
    db.delete(category)
    db.commit()


# Safety events

def create_safety_event(db: Session, data: Dict) -> SafetyEvent:
    """Log a safety event, snapshotting the category's scores when not supplied."""
    data = dict(data)
    _check_reference(db, Driver, data["driver_id"], "Driver")
    category = _check_reference(db, SafetyCategory, data["category_id"], "Safety category")
    if data.get("bonus_score") is None:
        data["bonus_score"] = category.scoring_system
    if data.get("p_i_score") is None:
        data["p_i_score"] = category.p_i_score

    event = SafetyEvent(**data)
    db.add(event)
    db.commit()
    db.refresh(event)
    return event

def update_safety_event(db: Session, safety_event_id: int, data: Dict) -> SafetyEvent:
    """Update a safety event, leaving omitted fields unchanged."""
    event = _get(db, SafetyEvent, safety_event_id, "Safety event")
    data = {key: value for key, value in data.items() if value is not None}
    if "driver_id" in data:
        _check_reference(db, Driver, data["driver_id"], "Driver")
    _apply(event, data)
    db.commit()
    db.refresh(event)
    return event

def delete_safety_event(db: Session, safety_event_id: int) -> None:
    """Delete one safety event."""
    event = _get(db, SafetyEvent, safety_event_id, "Safety event")
    db.delete(event)
    db.commit()


# Scorecard metrics

def create_scorecard_metric(db: Session, data: Dict) -> ScoreCardItem:
    """Create a scorecard metric."""
    _check_reference(db, DriverType, data.get("driver_type_id"), "Driver type")
    metric = ScoreCardItem(**data)
    db.add(metric)
    db.commit()
    db.refresh(metric)
    return metric

def update_scorecard_metric(db: Session, sc_category_id: int, data: Dict) -> ScoreCardItem:
    """Update a scorecard metric."""
    metric = _get(db, ScoreCardItem, sc_category_id, "Scorecard metric")
    _check_reference(db, DriverType, data.get("driver_type_id"), "Driver type")
    _apply(metric, data)
    db.commit()
    db.refresh(metric)
    return metric

def delete_scorecard_metric(db: Session, sc_category_id: int) -> None:
    """Delete a scorecard metric together with its grade rows."""
    metric = _get(db, ScoreCardItem, sc_category_id, "Scorecard metric")
    db.query(ScoreCardEvent).filter(ScoreCardEvent.sc_category_id == sc_category_id).delete()
    db.delete(metric)
    db.commit()


# Scorecard grading sessions

def _metric_ids(db: Session, category: str) -> List[int]:
    """Ids of the metrics in a scorecard category."""
    rows = db.query(ScoreCardItem.sc_category_id).filter(ScoreCardItem.sc_category == category).all()
    return [row[0] for row in rows]

def _session_query(db: Session, driver_id: int, month: str, category: str):
    """Query for the grade rows of one (driver, month, category) triple."""
    start, end = month_bounds(month)
    return db.query(ScoreCardEvent).filter(
        ScoreCardEvent.driver_id == driver_id,
        ScoreCardEvent.event_date >= start,
        ScoreCardEvent.event_date < end,
        ScoreCardEvent.sc_category_id.in_(_metric_ids(db, category))
    )

def get_scorecard(db: Session, driver_id: int, month: str, category: str) -> Dict:
    """Grades saved for one (driver, month, category) triple."""
    _get(db, Driver, driver_id, "Driver")
    events = _session_query(db, driver_id, month, category).order_by(
        ScoreCardEvent.scorecard_event_id
    ).all()
    return {
        "notes": events[0].notes if events else "",
        "scores": [
            {"sc_category_id": e.sc_category_id, "sc_score": e.sc_score} for e in events
        ]
    }

def replace_scorecard(
    db: Session,
    driver_id: int,
    month: str,
    category: str,
    notes: str,
    scores: Iterable[Dict]
) -> List[ScoreCardEvent]:
    """Replace every grade row of a (driver, month, category) triple in one transaction."""
    driver = _check_reference(db, Driver, driver_id, "Driver")
    metrics = {
        m.sc_category_id: m
        for m in db.query(ScoreCardItem).filter(ScoreCardItem.sc_category == category)
    }

    by_metric: Dict[int, int] = {}
    for score in scores:
        metric_id = score["sc_category_id"]
        metric = metrics.get(metric_id)
        if metric is None:
            raise InvalidReference(f"Scorecard metric {metric_id} is not a {category} metric")
        if metric.driver_type_id is not None and metric.driver_type_id != driver.driver_type_id:
            raise InvalidReference(
                f"Scorecard metric {metric_id} does not apply to driver {driver_id}'s driver type"
            )
        by_metric[metric_id] = score["sc_score"]

    removed = _session_query(db, driver_id, month, category).delete(synchronize_session=False)
    event_date, _ = month_bounds(month)
    events = [
        ScoreCardEvent(
            driver_id=driver_id,
            event_date=event_date,
            sc_category_id=metric_id,
            sc_score=value,
            notes=notes
        )
        for metric_id, value in by_metric.items()
    ]
    db.add_all(events)
    db.commit()
    for event in events:
        db.refresh(event)

    logger.info("Scorecard %s/%s/%s replaced %d rows with %d",
                driver_id, month, category, removed, len(events))
    return events

def delete_scorecard(db: Session, driver_id: int, month: str, category: str) -> int:
    """Delete every grade row of a triple; returns the number removed."""
    removed = _session_query(db, driver_id, month, category).delete(synchronize_session=False)
    db.commit()
    logger.info("Scorecard %s/%s/%s deleted (%d rows)", driver_id, month, category, removed)
    return removed
