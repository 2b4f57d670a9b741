from fastapi import APIRouter, Depends, Path, Response
from sqlalchemy import text
from sqlalchemy.orm import Session
from typing import Annotated, List, Dict, Any
from ..db import get_db
from .. import persistence, schemas, stats
from ..config import local_now

router = APIRouter()

Month = Annotated[str, Path(pattern=schemas.MONTH_PATTERN, description="Review month as YYYY-MM")]

@router.get("/healthz")
def healthz(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Database-backed health check."""
    db.execute(text("SELECT 1"))
    return {"status": "ok", "time": local_now().isoformat()}

@router.get("/bootstrap", response_model=schemas.Bootstrap)
def bootstrap(db: Session = Depends(get_db)):
    """Every collection the client store mirrors, in one round trip."""
    return persistence.get_bootstrap(db)

@router.get("/dashboard")
def dashboard_stats(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Dashboard aggregates over the current data."""
    snapshot = persistence.get_bootstrap(db)
    return stats.dashboard_summary(
        snapshot["drivers"], snapshot["trucks"],
        snapshot["safety_events"], snapshot["safety_categories"]
    )

# Drivers

@router.get("/drivers", response_model=List[schemas.Driver])
def list_drivers(db: Session = Depends(get_db)):
    return persistence.list_drivers(db)

@router.post("/drivers", response_model=schemas.Driver)
def create_driver(payload: schemas.DriverCreate, db: Session = Depends(get_db)):
    return persistence.create_driver(db, payload.model_dump())

@router.put("/drivers/{driver_id}", response_model=schemas.Driver)
def update_driver(driver_id: int, payload: schemas.DriverCreate, db: Session = Depends(get_db)):
    return persistence.update_driver(db, driver_id, payload.model_dump())

@router.delete("/drivers/{driver_id}", status_code=204)
def delete_driver(driver_id: int, db: Session = Depends(get_db)):
    """Delete a driver, their safety events and scorecard events."""
    persistence.delete_driver(db, driver_id)
    return Response(status_code=204)

@router.get("/drivers/{driver_id}/stats", response_model=schemas.DriverStats)
def get_driver_stats(driver_id: int, db: Session = Depends(get_db)):
    return persistence.get_driver_stats(db, driver_id)

@router.post("/drivers/{driver_id}/assign-truck", response_model=schemas.AssignmentResult)
def assign_truck(driver_id: int, payload: schemas.TruckAssignment, db: Session = Depends(get_db)):
    """Link a driver to a truck (or unlink with null), updating both trucks' status."""
    driver, trucks = persistence.assign_truck(db, driver_id, payload.truck_id)
    return {"driver": driver, "trucks": trucks}

# Trucks

@router.get("/trucks", response_model=List[schemas.Truck])
def list_trucks(db: Session = Depends(get_db)):
    return persistence.list_trucks(db)

@router.post("/trucks", response_model=schemas.Truck)
def create_truck(payload: schemas.TruckCreate, db: Session = Depends(get_db)):
    return persistence.create_truck(db, payload.model_dump())

@router.put("/trucks/{truck_id}", response_model=schemas.Truck)
def update_truck(truck_id: int, payload: schemas.TruckCreate, db: Session = Depends(get_db)):
    return persistence.update_truck(db, truck_id, payload.model_dump())

@router.delete("/trucks/{truck_id}", status_code=204)
def delete_truck(truck_id: int, db: Session = Depends(get_db)):
    persistence.delete_truck(db, truck_id)
    return Response(status_code=204)

@router.get("/trucks/{truck_id}/history", response_model=List[schemas.TruckHistoryEvent])
def get_truck_history(truck_id: int, db: Session = Depends(get_db)):
    """Read-only audit trail for a truck, newest first."""
    return persistence.get_truck_history(db, truck_id)

@router.post("/trucks/{truck_id}/assign-driver", response_model=schemas.AssignmentResult)
def assign_driver(truck_id: int, payload: schemas.DriverAssignment, db: Session = Depends(get_db)):
    driver, trucks = persistence.assign_driver(db, truck_id, payload.driver_id)
    return {"driver": driver, "trucks": trucks}

# Driver types

@router.get("/driver-types", response_model=List[schemas.DriverType])
def list_driver_types(db: Session = Depends(get_db)):
    return persistence.list_driver_types(db)

@router.post("/driver-types", response_model=schemas.DriverType)
def create_driver_type(payload: schemas.DriverTypeCreate, db: Session = Depends(get_db)):
    return persistence.create_driver_type(db, payload.model_dump())

@router.put("/driver-types/{driver_type_id}", response_model=schemas.DriverType)
def update_driver_type(driver_type_id: int, payload: schemas.DriverTypeCreate, db: Session = Depends(get_db)):
    return persistence.update_driver_type(db, driver_type_id, payload.model_dump())

@router.delete("/driver-types/{driver_type_id}", status_code=204)
def delete_driver_type(driver_type_id: int, db: Session = Depends(get_db)):
    persistence.delete_driver_type(db, driver_type_id)
    return Response(status_code=204)

# Safety categories

@router.get("/safety-categories", response_model=List[schemas.SafetyCategory])
def list_safety_categories(db: Session = Depends(get_db)):
    return persistence.list_safety_categories(db)

@router.post("/safety-categories", response_model=schemas.SafetyCategory)
def create_safety_category(payload: schemas.SafetyCategoryCreate, db: Session = Depends(get_db)):
    return persistence.create_safety_category(db, payload.model_dump())

@router.put("/safety-categories/{category_id}", response_model=schemas.SafetyCategory)
def update_safety_category(category_id: int, payload: schemas.SafetyCategoryCreate, db: Session = Depends(get_db)):
    return persistence.update_safety_category(db, category_id, payload.model_dump())

@router.delete("/safety-categories/{category_id}", status_code=204)
def delete_safety_category(category_id: int, db: Session = Depends(get_db)):
    persistence.delete_safety_category(db, category_id)
    return Response(status_code=204)

# Safety events

@router.get("/safety-events", response_model=List[schemas.SafetyEvent])
def list_safety_events(db: Session = Depends(get_db)):
    return persistence.list_safety_events(db)

@router.post("/safety-events", response_model=schemas.SafetyEvent)
def create_safety_event(payload: schemas.SafetyEventCreate, db: Session = Depends(get_db)):
    """Log a safety event; scores default to the category's current values."""
    return persistence.create_safety_event(db, payload.model_dump())

@router.put("/safety-events/{safety_event_id}", response_model=schemas.SafetyEvent)
def update_safety_event(safety_event_id: int, payload: schemas.SafetyEventCreate, db: Session = Depends(get_db)):
    return persistence.update_safety_event(db, safety_event_id, payload.model_dump())

@router.delete("/safety-events/{safety_event_id}", status_code=204)
def delete_safety_event(safety_event_id: int, db: Session = Depends(get_db)):
    persistence.delete_safety_event(db, safety_event_id)
    return Response(status_code=204)

# Scorecard metrics

@router.get("/scorecard-metrics", response_model=List[schemas.ScoreCardItem])
def list_scorecard_metrics(db: Session = Depends(get_db)):
    return persistence.list_scorecard_metrics(db)

@router.post("/scorecard-metrics", response_model=schemas.ScoreCardItem)
def create_scorecard_metric(payload: schemas.ScoreCardItemCreate, db: Session = Depends(get_db)):
    return persistence.create_scorecard_metric(db, payload.model_dump())

@router.put("/scorecard-metrics/{sc_category_id}", response_model=schemas.ScoreCardItem)
def update_scorecard_metric(sc_category_id: int, payload: schemas.ScoreCardItemCreate, db: Session = Depends(get_db)):
    return persistence.update_scorecard_metric(db, sc_category_id, payload.model_dump())

@router.delete("/scorecard-metrics/{sc_category_id}", status_code=204)
def delete_scorecard_metric(sc_category_id: int, db: Session = Depends(get_db)):
    persistence.delete_scorecard_metric(db, sc_category_id)
    return Response(status_code=204)

# Scorecard grading

@router.get("/scorecard-events", response_model=List[schemas.ScoreCardEvent])
def list_scorecard_events(db: Session = Depends(get_db)):
    return persistence.list_scorecard_events(db)

@router.get("/scorecards/{driver_id}/{month}/{category}", response_model=schemas.ScorecardGrade)
def get_scorecard(driver_id: int, month: Month, category: schemas.ScorecardCategory,
                  db: Session = Depends(get_db)):
    return persistence.get_scorecard(db, driver_id, month, category)

@router.put("/scorecards/{driver_id}/{month}/{category}", response_model=List[schemas.ScoreCardEvent])
def save_scorecard(driver_id: int, month: Month, category: schemas.ScorecardCategory,
                   payload: schemas.ScorecardGrade, db: Session = Depends(get_db)):
    """Replace the whole grading session for a driver, month and category."""
    return persistence.replace_scorecard(
        db, driver_id, month, category, payload.notes,
        [score.model_dump() for score in payload.scores]
    )

@router.delete("/scorecards/{driver_id}/{month}/{category}", status_code=204)
def delete_scorecard(driver_id: int, month: Month, category: schemas.ScorecardCategory,
                     db: Session = Depends(get_db)):
    persistence.delete_scorecard(db, driver_id, month, category)
    return Response(status_code=204)
