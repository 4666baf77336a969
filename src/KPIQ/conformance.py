"""
Target conformance rules.

A record passes when its actual value satisfies its target. Time KPIs and
a small allow-list of percentage KPIs are lower-is-better; every other
percentage KPI is higher-is-better.
"""

import math
import typing

from .record import KPIRecord
from .section import KPIType

# Percentage KPIs where a smaller value is the better outcome
LOWER_IS_BETTER_PCT_KPIS = frozenset({"reattendance rate", "overstaying", "overboarding"})


def _as_number(value: typing.Any, default: float) -> float:
    # absent or non-numeric values fall back to the sentinel
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number):
        return default
    return number


def is_lower_better(record: KPIRecord) -> bool:
    if record.kpi_type is KPIType.TIME:
        return True
    return str(record.kpi_name or "").strip().lower() in LOWER_IS_BETTER_PCT_KPIS


def is_conformant(record: KPIRecord) -> bool:
    """
    Lower-is-better: a missing actual counts as +inf (fail), a missing
    target as 0. Higher-is-better: both default to 0, so a record with
    no percentage data at all passes against a zero target.
    """
    metric = record.primary_metric
    if is_lower_better(record):
        return _as_number(metric.actual, math.inf) <= _as_number(metric.target, 0.0)

    return _as_number(metric.actual, 0.0) >= _as_number(metric.target, 0.0)


def actual_value(record: KPIRecord) -> typing.Optional[float]:
    """The actual value matching the record's kind, or None if absent."""
    number = _as_number(record.primary_metric.actual, math.nan)
    return None if math.isnan(number) else number
