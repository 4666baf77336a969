"""
Section performance classification.

Two distinct policies live here:

- classify_section: longitudinal section health from rolling 3/6/9-month
  failure counts measured back from a reference date.
- classify_sections_in_range: ad hoc comparison of sections within a
  chosen date range. It has no STABLE tier.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from .conformance import is_conformant
from .record import KPIRecord, approved_only
from .section import SectionName


class PerformanceStatus(Enum):
    TOP_PERFORMER = "Top Performer"
    STABLE = "Stable Performer"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    CRITICAL = "Critical"
    UNDEFINED = "New / Undefined"


@dataclass
class SectionPerformance:
    """
    Rolling-window classification of one section.

    Attributes:
        section: The classified section.
        status: Performance tier.
        failure_count_3_months: Non-conformances within the last 3 months.
        last_failure_date: Month of the most recent non-conformance, if any.
    """

    section: SectionName
    status: PerformanceStatus
    failure_count_3_months: int = 0
    last_failure_date: Optional[date] = None


@dataclass
class RangePerformance:
    section: SectionName
    status: PerformanceStatus
    failure_count: int = 0


@dataclass
class KPIConformance:
    kpi_name: str
    conformance_rate: float


@dataclass
class SectionDetail:
    """
    Per-KPI ranking and monthly pass/fail grid for one section.
    Heatmap cells are True (pass), False (fail) or None (no data).
    """

    section: SectionName
    kpi_ranking: list[KPIConformance] = field(default_factory=list)
    months: list[str] = field(default_factory=list)
    rows: list[str] = field(default_factory=list)
    heatmap: dict[str, dict[str, Optional[bool]]] = field(default_factory=dict)

    @property
    def best_kpi(self) -> Optional[KPIConformance]:
        return self.kpi_ranking[0] if self.kpi_ranking else None

    @property
    def worst_kpi(self) -> Optional[KPIConformance]:
        return self.kpi_ranking[-1] if self.kpi_ranking else None


def months_back(reference: date, months: int) -> date:
    """First day of the month `months` calendar months before `reference`."""
    index = reference.year * 12 + (reference.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def classify_section(
    section: SectionName,
    records: Iterable[KPIRecord],
    as_of: Optional[date] = None,
) -> SectionPerformance:
    """
    Tier a section from failures in the 3, 6 and 9 months before `as_of`
    (today when omitted). Drafts are ignored.
    """
    reference = as_of or date.today()
    section_records = [r for r in approved_only(records) if r.section is section]
    if not section_records:
        return SectionPerformance(section=section, status=PerformanceStatus.UNDEFINED)

    section_records.sort(key=lambda r: r.month, reverse=True)
    window_starts = {n: months_back(reference, n) for n in (3, 6, 9)}
    failures = {n: 0 for n in window_starts}
    last_failure: Optional[date] = None

    for record in section_records:
        if is_conformant(record):
            continue
        if last_failure is None:
            last_failure = record.month
        for n, start in window_starts.items():
            if record.month >= start:
                failures[n] += 1

    if failures[3] >= 2:
        status = PerformanceStatus.CRITICAL
    elif failures[3] == 1:
        status = PerformanceStatus.NEEDS_IMPROVEMENT
    elif failures[6] == 0 and failures[9] == 0:
        status = PerformanceStatus.TOP_PERFORMER
    else:
        status = PerformanceStatus.STABLE

    return SectionPerformance(
        section=section,
        status=status,
        failure_count_3_months=failures[3],
        last_failure_date=last_failure,
    )


def classify_all_sections(
    records: Iterable[KPIRecord], as_of: Optional[date] = None
) -> list[SectionPerformance]:
    records = list(records)
    return [classify_section(section, records, as_of) for section in SectionName]


def _in_range(record: KPIRecord, date_from: date, date_to: date) -> bool:
    return date_from <= record.month <= date_to


def classify_sections_in_range(
    records: Iterable[KPIRecord], date_from: date, date_to: date
) -> list[RangePerformance]:
    """
    Count non-conformances per section within [date_from, date_to]:
    0 -> TOP_PERFORMER, 1 -> NEEDS_IMPROVEMENT, 2+ -> CRITICAL,
    no records -> UNDEFINED.
    """
    in_range = [r for r in approved_only(records) if _in_range(r, date_from, date_to)]
    results: list[RangePerformance] = []
    for section in SectionName:
        section_records = [r for r in in_range if r.section is section]
        failures = sum(1 for r in section_records if not is_conformant(r))

        if not section_records:
            status = PerformanceStatus.UNDEFINED
        elif failures == 0:
            status = PerformanceStatus.TOP_PERFORMER
        elif failures == 1:
            status = PerformanceStatus.NEEDS_IMPROVEMENT
        else:
            status = PerformanceStatus.CRITICAL

        results.append(RangePerformance(section=section, status=status, failure_count=failures))
    return results


def section_detail(
    records: Iterable[KPIRecord], section: SectionName, date_from: date, date_to: date
) -> SectionDetail:
    section_records = [
        r for r in approved_only(records)
        if r.section is section and _in_range(r, date_from, date_to)
    ]
    detail = SectionDetail(section=section)
    if not section_records:
        return detail

    # per-KPI conformance, best first
    totals: dict[str, list[int]] = {}
    for record in section_records:
        counts = totals.setdefault(record.kpi_name, [0, 0])
        counts[0] += 1
        if is_conformant(record):
            counts[1] += 1
    detail.kpi_ranking = sorted(
        (KPIConformance(kpi, conformant / total * 100) for kpi, (total, conformant) in totals.items()),
        key=lambda k: k.conformance_rate,
        reverse=True,
    )

    # a KPI reported under several departments gets one row per department
    departments: dict[str, set[str]] = defaultdict(set)
    for record in section_records:
        departments[record.kpi_name].add(record.department)

    def row_label(record: KPIRecord) -> str:
        if len(departments[record.kpi_name]) > 1:
            return f"{record.kpi_name} ({record.department})"
        return record.kpi_name

    detail.months = sorted({r.month.strftime("%Y-%m") for r in section_records})
    detail.rows = sorted({row_label(r) for r in section_records})
    detail.heatmap = {row: {month: None for month in detail.months} for row in detail.rows}
    for record in section_records:
        detail.heatmap[row_label(record)][record.month.strftime("%Y-%m")] = is_conformant(record)
    return detail
