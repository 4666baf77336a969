"""
Measurement record domain model.

Defines the KPIRecord dataclass for one monthly KPI submission, plus the
metric variants that describe which of its numeric fields are meaningful.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional, Union

from .section import KPIType, RecordStatus, SectionName


@dataclass(frozen=True)
class TimeMetric:
    target: Optional[float]
    actual: Optional[float]
    unit: Optional[str]


@dataclass(frozen=True)
class PercentageMetric:
    target: float
    actual: Optional[float]


@dataclass(frozen=True)
class DualMetric:
    """A KPI reported against both a time target and a percentage target."""
    time: TimeMetric
    pct: PercentageMetric


Metric = Union[TimeMetric, PercentageMetric, DualMetric]


@dataclass
class KPIRecord:
    """
    Represents one reported data point for a KPI in a month.

    Attributes:
        id: Unique record identifier.
        section: Hospital section that submitted the record.
        kpi_name: KPI name (free text, e.g. "Triage Response Time").
        department: Department / type tag (free text).
        kpi_type: PERCENTAGE or TIME.
        month: Reporting month, first-of-month date.
        census: Patient volume count for the month.
        target_time, actual_time, time_unit: Time metric, when present.
        target_pct: Percentage target, 0 when absent.
        actual_pct: Percentage actual, None when absent.
        due_date, date_submitted: Submission tracking dates.
        remarks: Free-text remarks.
        status: DRAFT or APPROVED.
    """

    id: str
    section: SectionName
    kpi_name: str
    department: str
    kpi_type: KPIType
    month: date
    census: int = 0
    target_time: Optional[float] = None
    actual_time: Optional[float] = None
    time_unit: Optional[str] = None
    target_pct: float = 0.0
    actual_pct: Optional[float] = None
    due_date: Optional[date] = None
    date_submitted: Optional[date] = None
    remarks: Optional[str] = None
    status: RecordStatus = RecordStatus.APPROVED

    def __post_init__(self):
        if not isinstance(self.section, SectionName):
            raise ValueError(f"Invalid section: {self.section!r}")

        if not isinstance(self.kpi_type, KPIType):
            raise ValueError(f"Invalid KPI type: {self.kpi_type!r}")

        if self.census is None:
            self.census = 0
        if self.census < 0:
            raise ValueError(f"census must be non-negative, got {self.census}")

    @property
    def has_time(self) -> bool:
        return self.actual_time is not None or self.target_time is not None

    @property
    def has_percentage(self) -> bool:
        return self.actual_pct is not None

    @property
    def is_approved(self) -> bool:
        return self.status is RecordStatus.APPROVED

    @property
    def metric(self) -> Metric:
        """
        Which target/actual pair this record carries. TIME records with a
        percentage actual as well are reported as dual-metric.
        """
        time_metric = self._time_metric()
        pct_metric = self._pct_metric()
        if self.has_time and self.has_percentage:
            return DualMetric(time=time_metric, pct=pct_metric)
        if self.has_time or self.kpi_type is KPIType.TIME:
            return time_metric
        return pct_metric

    @property
    def primary_metric(self) -> Union[TimeMetric, PercentageMetric]:
        """The pair that conformance and variance are judged on, chosen by `kpi_type`."""
        metric = self.metric
        if isinstance(metric, DualMetric):
            return metric.time if self.kpi_type is KPIType.TIME else metric.pct
        if self.kpi_type is KPIType.TIME:
            return metric if isinstance(metric, TimeMetric) else self._time_metric()
        return metric if isinstance(metric, PercentageMetric) else self._pct_metric()

    def _time_metric(self) -> TimeMetric:
        return TimeMetric(self.target_time, self.actual_time, self.time_unit)

    def _pct_metric(self) -> PercentageMetric:
        return PercentageMetric(self.target_pct or 0.0, self.actual_pct)


def approved_only(records: Iterable[KPIRecord]) -> list[KPIRecord]:
    """Keep only APPROVED records; drafts never reach dashboard aggregates."""
    return [record for record in records if record.is_approved]
