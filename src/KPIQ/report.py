"""
Printable single-record KPI report.
"""

from typing import Iterable, Optional

from .analysis import variance
from .conformance import is_conformant, is_lower_better
from .definition import KPIDefinition
from .record import KPIRecord
from .section import KPIType, SectionName


def find_report_record(
    records: Iterable[KPIRecord],
    section: SectionName,
    month: str,
    kpi_name: Optional[str] = None,
    department: Optional[str] = None,
) -> Optional[KPIRecord]:
    """First record for `section` in `month` ("YYYY-MM"), optionally narrowed by KPI and department."""
    for record in records:
        if record.section is not section:
            continue
        if kpi_name and record.kpi_name != kpi_name:
            continue
        if department and record.department != department:
            continue
        if record.month.strftime("%Y-%m") == month:
            return record
    return None


def _format_value(value: Optional[float], unit: str) -> str:
    if value is None:
        return "N/A"
    return f"{value:.2f}%" if unit == "%" else f"{value:.2f} {unit}".rstrip()


def render_report(record: KPIRecord, definition: Optional[KPIDefinition] = None) -> str:
    if record.kpi_type is KPIType.TIME:
        unit = record.time_unit or ""
        target, actual = record.target_time, record.actual_time
    else:
        unit = "%"
        target, actual = record.target_pct, record.actual_pct

    delta = variance(record)
    if delta is None:
        variance_text = "N/A"
    elif record.kpi_type is KPIType.TIME:
        unit_part = f" {unit}" if unit else ""
        variance_text = f"{abs(delta):.2f}{unit_part} {'slower' if delta > 0 else 'faster'}"
    else:
        variance_text = f"{delta:+.2f}%"

    direction = "lower is better" if is_lower_better(record) else "higher is better"
    lines = [
        "KPI MONTHLY REPORT",
        f"Section:          {record.section.value}",
        f"Document No.:     {definition.document_number if definition else 'N/A'}",
        f"KPI:              {record.kpi_name}",
        f"Department:       {record.department or 'N/A'}",
        f"Month:            {record.month.strftime('%B %Y')}",
        f"Census:           {record.census}",
        f"Target:           {_format_value(target, unit)} ({direction})",
        f"Actual:           {_format_value(actual, unit)}",
        f"Variance:         {variance_text}",
        f"Result:           {'CONFORMANT' if is_conformant(record) else 'NON-CONFORMANT'}",
    ]
    if definition is not None:
        lines.append(f"Quality Objective: {definition.quality_objective}")
        lines.append(f"Formula:          {definition.formula}")
    if record.remarks:
        lines.append(f"Remarks:          {record.remarks}")
    return "\n".join(lines)
