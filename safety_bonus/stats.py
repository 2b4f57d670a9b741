"""Derived statistics for the dashboard, roster and scorecard screens.

Every function here is pure: it takes records (ORM rows or the pydantic
schemas the client store holds) and returns plain data.
"""
import math
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Union

import pandas as pd

from .config import config, local_today

Completion = Union[int, str]


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up."""
    return int(math.floor(value + 0.5))

def average_bonus_score(events: Sequence) -> float:
    """Arithmetic mean of bonus_score over all events, 0 when there are none."""
    if not events:
        return 0.0
    return sum(e.bonus_score or 0 for e in events) / len(events)

def format_score(value: float) -> str:
    return f"{value:.1f}"

def category_code(categories: Iterable, category_id: int) -> str:
    for category in categories:
        if category.category_id == category_id:
            return category.code
    return f"CAT-{category_id}"

def driver_name(drivers: Iterable, driver_id: Optional[int]) -> str:
    for driver in drivers:
        if driver.driver_id == driver_id:
            return f"{driver.first_name} {driver.last_name}"
    return "Unknown"


# Risk

def driver_bonus_totals(drivers: Iterable, events: Iterable) -> Dict[int, int]:
    totals = {driver.driver_id: 0 for driver in drivers}
    for event in events:
        if event.driver_id in totals:
            totals[event.driver_id] += event.bonus_score or 0
    return totals

def classify_risk(total_bonus: int) -> str:
    if total_bonus > config.medium_risk_max:
        return "High"
    if total_bonus > config.low_risk_max:
        return "Medium"
    return "Low"

def risk_distribution(drivers: Sequence, events: Iterable) -> List[Dict]:
    """Share of drivers in each risk bucket by summed bonus score."""
    totals = driver_bonus_totals(drivers, events)
    counts = {"Low": 0, "Medium": 0, "High": 0}
    for total in totals.values():
        counts[classify_risk(total)] += 1

    driver_count = len(totals) or 1
    labels = {
        "Low": f"Low Risk (0-{config.low_risk_max})",
        "Medium": f"Med Risk ({config.low_risk_max + 1}-{config.medium_risk_max})",
        "High": f"High Risk (>{config.medium_risk_max})",
    }
    return [
        {
            "name": bucket,
            "label": labels[bucket],
            "count": count,
            "percentage": round_half_up(count / driver_count * 100),
        }
        for bucket, count in counts.items()
    ]

def driver_stats(driver_id: int, events: Iterable) -> Dict:
    own = [e for e in events if e.driver_id == driver_id]
    total_bonus = sum(e.bonus_score or 0 for e in own)
    return {
        "event_count": len(own),
        "total_bonus_score": total_bonus,
        "total_p_i_score": sum(e.p_i_score or 0 for e in own),
        "status": "Warning" if total_bonus > config.driver_warning_threshold else "Good",
    }


# Trend

def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())

def violation_trend(
    events: Iterable,
    categories: Iterable,
    today: Optional[date] = None,
    weeks: Optional[int] = None,
    window_days: Optional[int] = None,
    top_n: Optional[int] = None
) -> Dict:
    """Weekly counts for the most frequent safety categories.

    Events from the trailing window_days are ranked by category frequency
    (ties go to the lower category_id); the top_n categories are counted in
    Monday-aligned weeks, oldest first, ending with the current week.
    """
    today = today or local_today()
    weeks = weeks or config.trend_weeks
    window_days = window_days or config.trend_window_days
    top_n = top_n or config.trend_top_categories

    first_monday = week_start(today) - timedelta(weeks=weeks - 1)
    week_starts = [first_monday + timedelta(weeks=i) for i in range(weeks)]
    end = week_starts[-1] + timedelta(weeks=1)

    frame = pd.DataFrame(
        [(e.category_id, e.event_date) for e in events],
        columns=["category_id", "event_date"]
    )
    frame["event_date"] = pd.to_datetime(frame["event_date"])
    recent = frame[
        (frame["event_date"] >= pd.Timestamp(today - timedelta(days=window_days)))
        & (frame["event_date"] < pd.Timestamp(end))
    ]

    ranked = recent.groupby("category_id").size().sort_values(ascending=False, kind="stable")
    top_ids = [int(category_id) for category_id in ranked.index[:top_n]]

    recent = recent[recent["category_id"].isin(top_ids)].copy()
    recent["week"] = (recent["event_date"] - pd.Timestamp(first_monday)).dt.days // 7
    recent = recent[(recent["week"] >= 0) & (recent["week"] < weeks)]

    if recent.empty:
        table = pd.DataFrame(0, index=range(weeks), columns=top_ids)
    else:
        table = (
            recent.groupby(["week", "category_id"]).size()
            .unstack(fill_value=0)
            .reindex(index=range(weeks), columns=top_ids, fill_value=0)
        )

    categories = list(categories)
    return {
        "labels": [f"{d.month}/{d.day}" for d in week_starts],
        "week_starts": [d.isoformat() for d in week_starts],
        "series": [
            {
                "category_id": category_id,
                "code": category_code(categories, category_id),
                "counts": [int(n) for n in table[category_id].tolist()],
            }
            for category_id in top_ids
        ],
    }


def recent_activity(events: Iterable, limit: Optional[int] = None) -> List:
    """Most recent events by date, newest first."""
    limit = limit or config.recent_activity_limit
    ordered = sorted(events, key=lambda e: str(e.event_date), reverse=True)
    return ordered[:limit]


# Scorecards

def applicable_metrics(metrics: Iterable, category: str, driver_type_id: Optional[int]) -> List:
    """Metrics of a category that apply to a driver type (global metrics always apply)."""
    return [
        m for m in metrics
        if m.sc_category == category
        and (m.driver_type_id is None or m.driver_type_id == driver_type_id)
    ]

def session_events(grade_events: Iterable, metrics: Iterable, driver_id: int,
                   month: str, category: str) -> List:
    """Grade rows saved for one (driver, month, category) triple."""
    metric_ids = {m.sc_category_id for m in metrics if m.sc_category == category}
    return [
        e for e in grade_events
        if e.driver_id == driver_id
        and str(e.event_date).startswith(month)
        and e.sc_category_id in metric_ids
    ]

def scorecard_completion(metrics: Sequence, grade_events: Sequence, driver_id: int,
                         driver_type_id: Optional[int], month: str, category: str) -> Completion:
    """Earned points as a percentage of the maximum, or "N/A" / "Pending"."""
    applicable = applicable_metrics(metrics, category, driver_type_id)
    if not applicable:
        return "N/A"
    # Grades left over from a previous driver type do not count.
    events = session_events(grade_events, applicable, driver_id, month, category)
    if not events:
        return "Pending"
    earned = sum(e.sc_score for e in events)
    return round_half_up(earned / (len(applicable) * 5) * 100)


def dashboard_summary(drivers: Sequence, trucks: Sequence, events: Sequence,
                      categories: Sequence, today: Optional[date] = None) -> Dict:
    """Everything the dashboard shows, computed from one snapshot."""
    average = average_bonus_score(events)
    return {
        "total_events": len(events),
        "active_trucks": sum(1 for t in trucks if t.status == "assigned"),
        "driver_count": len(drivers),
        "average_bonus_score": round(average, 1),
        "average_bonus_score_display": format_score(average),
        "risk_profile": risk_distribution(drivers, events),
        "trend": violation_trend(events, categories, today=today),
        "recent_activity": [
            {
                "safety_event_id": e.safety_event_id,
                "driver_id": e.driver_id,
                "driver_name": driver_name(drivers, e.driver_id),
                "event_date": str(e.event_date),
                "code": category_code(categories, e.category_id),
                "bonus_score": e.bonus_score,
                "bonus_period": e.bonus_period,
            }
            for e in recent_activity(events)
        ],
    }
