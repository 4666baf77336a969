"""
Quarterly roll-up of monthly KPI records.

Monthly records are folded into one synthetic record per calendar
quarter: census is summed, time and percentage values are averaged over
only the records that carry them.
"""

from __future__ import annotations

import dataclasses
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional, Sequence

from .record import KPIRecord
from .section import RecordStatus


def quarter_of(month: date) -> tuple[int, int]:
    """(year, quarter) with quarters numbered 1-4."""
    return month.year, (month.month - 1) // 3 + 1


def quarter_label(month: date) -> str:
    year, quarter = quarter_of(month)
    return f"{year}-Q{quarter}"


def quarter_start(year: int, quarter: int) -> date:
    return date(year, (quarter - 1) * 3 + 1, 1)


def _mean(values: Sequence[Optional[float]]) -> Optional[float]:
    defined = [float(v) for v in values if v is not None]
    if not defined:
        return None
    return sum(defined) / len(defined)


def _aggregate_quarter(year: int, quarter: int, records: list[KPIRecord]) -> KPIRecord:
    # first record supplies section, KPI name, department, kind and unit
    template = records[0]
    key = f"{year}-Q{quarter}"

    timed = [r for r in records if r.has_time]
    with_pct = [r for r in records if r.has_percentage]

    target_pct = _mean([r.target_pct for r in with_pct])
    actual_pct = _mean([r.actual_pct for r in with_pct])

    return dataclasses.replace(
        template,
        id=f"agg-{key}-{template.section.value}-{template.kpi_name}-{template.department or 'na'}",
        month=quarter_start(year, quarter),
        census=sum(r.census or 0 for r in records),
        target_time=_mean([r.target_time for r in timed]),
        actual_time=_mean([r.actual_time for r in timed]),
        target_pct=target_pct if target_pct is not None else 0.0,
        actual_pct=actual_pct if actual_pct is not None else 0.0,
        remarks=f"Aggregated for {key}",
        status=RecordStatus.APPROVED,
    )


def aggregate_by_quarter(records: Iterable[KPIRecord]) -> list[KPIRecord]:
    """
    Fold monthly records into one record per (year, quarter), sorted by
    quarter start. Callers pass a single section/KPI/department series;
    see aggregate_series_by_quarter for mixed input.
    """
    partitions: dict[tuple[int, int], list[KPIRecord]] = defaultdict(list)
    for record in records:
        partitions[quarter_of(record.month)].append(record)

    aggregated = [
        _aggregate_quarter(year, quarter, members)
        for (year, quarter), members in partitions.items()
    ]
    return sorted(aggregated, key=lambda r: r.month)


def aggregate_series_by_quarter(records: Iterable[KPIRecord]) -> list[KPIRecord]:
    """
    Split records into section/KPI/department series and aggregate each
    one by quarter. Output is ordered by quarter, then series.
    """
    series: dict[tuple, list[KPIRecord]] = defaultdict(list)
    for record in records:
        series[(record.section.value, record.kpi_name, record.department)].append(record)

    aggregated: list[KPIRecord] = []
    for members in series.values():
        aggregated.extend(aggregate_by_quarter(members))
    return sorted(
        aggregated,
        key=lambda r: (r.month, r.section.value, r.kpi_name, r.department or ""),
    )
