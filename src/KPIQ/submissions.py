"""
Late-submission tracking.

A record is late when it was submitted after its due date. Lateness is
independent of the reporting month.
"""

import logging
import math
import pathlib
from datetime import date
from typing import Iterable, Optional

import pandas as pd

from .record import KPIRecord

logger = logging.getLogger(__name__)

LATE_SUBMISSION_COLUMNS = ["Section", "Department", "KPI", "Due Date", "Date Submitted", "Days Late"]


def is_late(record: KPIRecord) -> bool:
    if record.due_date is None or record.date_submitted is None:
        return False
    return record.date_submitted > record.due_date


def days_late(record: KPIRecord) -> Optional[int]:
    if record.due_date is None or record.date_submitted is None:
        return None
    return math.ceil(abs((record.date_submitted - record.due_date).days))


def late_submissions(
    records: Iterable[KPIRecord],
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
) -> list[KPIRecord]:
    """
    Late records whose due date is within [date_from, date_to], most
    recently submitted first. Open bounds are unrestricted.
    """
    late = [
        r for r in records
        if is_late(r)
        and (date_from is None or r.due_date >= date_from)
        and (date_to is None or r.due_date <= date_to)
    ]
    return sorted(late, key=lambda r: r.date_submitted, reverse=True)


def late_submissions_frame(records: Iterable[KPIRecord]) -> pd.DataFrame:
    rows = [
        {
            "Section": r.section.value,
            "Department": r.department,
            "KPI": r.kpi_name,
            "Due Date": r.due_date.isoformat(),
            "Date Submitted": r.date_submitted.isoformat(),
            "Days Late": days_late(r),
        }
        for r in records
        if is_late(r)
    ]
    return pd.DataFrame(rows, columns=LATE_SUBMISSION_COLUMNS)


def export_late_submissions_csv(records: Iterable[KPIRecord], path) -> pathlib.Path:
    out = pathlib.Path(path)
    frame = late_submissions_frame(records)
    frame.to_csv(out, index=False)
    logger.info("Wrote %d late submissions to %s", len(frame), out)
    return out
