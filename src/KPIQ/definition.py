"""
KPI definition domain model.

Defines the KPIDefinition dataclass describing what a KPI measures and
who is responsible for it.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from .section import KPIType, SectionName


@dataclass
class KPIDefinition:
    """
    Represents the configured definition of one KPI for a section.

    Attributes:
        id: Unique definition identifier.
        section: Owning section.
        document_number: Controlled document number (e.g. 'QAD-EME-001').
        quality_objective: Quality objective the KPI supports.
        kpi_name: KPI name as used on records.
        definition: What the KPI measures.
        formula: How the KPI is computed.
        target: Human-readable target statement.
        responsible: Role accountable for the KPI.
        schedule: Reporting schedule (e.g. 'Monthly').
    """

    id: str
    section: SectionName
    document_number: str
    quality_objective: str
    kpi_name: str
    definition: str
    formula: str
    target: str
    responsible: str
    schedule: str
    target_time: Optional[float] = None
    target_pct: Optional[float] = None
    time_unit: Optional[str] = None
    department: Optional[str] = None
    kpi_type: Optional[KPIType] = None


def find_definition(
    definitions: Iterable[KPIDefinition], section: SectionName, kpi_name: str
) -> Optional[KPIDefinition]:
    for definition in definitions:
        if definition.section is section and definition.kpi_name == kpi_name:
            return definition
    return None
