"""
Narrative analysis and trend metrics for a filtered KPI series.

`summarize` turns a series into a short paragraph: conformance rate,
value range, best and worst month, and trend direction. Mixed-unit
series (time and percentage, or several time units) only get the
conformance sentence, since averaging across units is meaningless.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date
from typing import Optional, Sequence

from .conformance import actual_value, is_conformant, is_lower_better
from .record import KPIRecord
from .section import KPIType

NO_DATA_MESSAGE = "No data available for analysis in the selected range."
MIXED_UNITS_MESSAGE = (
    "Specific averages are not calculated because the selected records contain mixed "
    "measurement units (e.g., Time vs. Percentage). Please filter by a specific KPI to "
    "see detailed averages."
)
TREND_EPSILON = 0.01


def format_month(month: date) -> str:
    return month.strftime("%b %Y")


def _unit_suffix(unit: str) -> str:
    if unit == "%":
        return "%"
    return f" {unit}" if unit else ""


def is_mixed_units(records: Sequence[KPIRecord]) -> bool:
    kinds = {r.kpi_type for r in records}
    time_units = {r.time_unit for r in records if r.kpi_type is KPIType.TIME}
    return len(kinds) > 1 or (KPIType.TIME in kinds and len(time_units) > 1)


def summarize(
    records: Sequence[KPIRecord],
    section_label: Optional[str] = None,
    kpi_label: Optional[str] = None,
) -> str:
    if not records:
        return NO_DATA_MESSAGE

    ordered = sorted(records, key=lambda r: r.month)
    total = len(ordered)
    first, latest = ordered[0], ordered[-1]
    passed = sum(1 for r in ordered if is_conformant(r))
    success_rate = passed / total * 100

    subject = section_label or "the section"
    scope = f" for {kpi_label}" if kpi_label else ""
    parts = [
        f"Based on the {total} records displayed from {format_month(first.month)} to "
        f"{format_month(latest.month)}, {subject} achieved a {success_rate:.2f}% "
        f"conformance rate against targets{scope}."
    ]

    if is_mixed_units(ordered):
        parts.append(MIXED_UNITS_MESSAGE)
        return " ".join(parts)

    is_time = latest.kpi_type is KPIType.TIME
    suffix = _unit_suffix((latest.time_unit or "") if is_time else "%")
    lower_better = is_lower_better(latest)

    valid = [(r, actual_value(r)) for r in ordered]
    valid = [(r, v) for r, v in valid if v is not None]
    if not valid:
        return " ".join(parts)

    values = [v for _, v in valid]
    average = sum(values) / len(values)
    parts.append(
        f"The data shows an average performance of {average:.2f}{suffix}, ranging from a "
        f"low of {min(values):.2f}{suffix} to a high of {max(values):.2f}{suffix}."
    )

    if len(valid) > 1:
        best, best_value = valid[0]
        worst, worst_value = valid[0]
        for record, value in valid[1:]:
            if (value < best_value) if lower_better else (value > best_value):
                best, best_value = record, value
            if (value > worst_value) if lower_better else (value < worst_value):
                worst, worst_value = record, value

        if best is not worst:
            if lower_better:
                parts.append(
                    f"The best performance (lowest value) occurred in {format_month(best.month)} "
                    f"({best_value:.2f}{suffix}), while the worst was in "
                    f"{format_month(worst.month)} ({worst_value:.2f}{suffix})."
                )
            else:
                parts.append(
                    f"The highest performance occurred in {format_month(best.month)} "
                    f"({best_value:.2f}{suffix}), while the lowest was in "
                    f"{format_month(worst.month)} ({worst_value:.2f}{suffix})."
                )

        diff = (actual_value(latest) or 0.0) - (actual_value(first) or 0.0)
        if abs(diff) > TREND_EPSILON:
            parts.append(
                f"Comparing the start and end of this period, the trend is "
                f"{_trend_description(diff, lower_better)}."
            )

    return " ".join(parts)


def _trend_description(diff: float, lower_better: bool) -> str:
    if lower_better:
        return "improving (value decreasing)" if diff < 0 else "declining (value increasing)"
    return "improving (value increasing)" if diff > 0 else "declining (value decreasing)"


@dataclass
class TrendMetrics:
    """
    Headline figures for a filtered series.

    Attributes:
        total_census: Sum of census over the series.
        average_census: Mean census, rounded half up.
        success_count / fail_count: Conformant and non-conformant records.
        success_rate: Conformant share as a percentage.
        failure_streak: Consecutive non-conformant records at the end of the series.
        streak_records: Those records, most recent first.
        trend: Latest minus previous actual value (0 with fewer than two records).
        lower_is_better: Direction used to read `trend`.
    """

    total_census: int
    average_census: int
    success_count: int
    fail_count: int
    success_rate: float
    failure_streak: int
    streak_records: list[KPIRecord] = field(default_factory=list)
    trend: float = 0.0
    last_value: float = 0.0
    previous_value: float = 0.0
    lower_is_better: bool = False


def trend_metrics(records: Sequence[KPIRecord]) -> Optional[TrendMetrics]:
    if not records:
        return None

    ordered = sorted(records, key=lambda r: r.month)
    total_census = sum(r.census or 0 for r in ordered)
    success_count = sum(1 for r in ordered if is_conformant(r))

    streak: list[KPIRecord] = []
    for record in reversed(ordered):
        if is_conformant(record):
            break
        streak.append(record)

    last_value = previous_value = 0.0
    if len(ordered) >= 2:
        last_value = actual_value(ordered[-1]) or 0.0
        previous_value = actual_value(ordered[-2]) or 0.0

    return TrendMetrics(
        total_census=total_census,
        average_census=int(math.floor(total_census / len(ordered) + 0.5)),
        success_count=success_count,
        fail_count=len(ordered) - success_count,
        success_rate=success_count / len(ordered) * 100,
        failure_streak=len(streak),
        streak_records=streak,
        trend=last_value - previous_value,
        last_value=last_value,
        previous_value=previous_value,
        lower_is_better=is_lower_better(ordered[0]),
    )


def variance(record: KPIRecord) -> Optional[float]:
    """Signed actual minus target for the record's primary metric."""
    actual = actual_value(record)
    if actual is None:
        return None
    return actual - (record.primary_metric.target or 0.0)
