import datetime

from KPIQ.definition import KPIDefinition, find_definition
from KPIQ.report import find_report_record, render_report
from KPIQ.section import KPIType, SectionName


def _definition(**overrides):
    fields = dict(
        id="kpi-er-1",
        section=SectionName.ER,
        document_number="QAD-EME-001",
        quality_objective="To ensure timely provision of services.",
        kpi_name="Triage Response Time",
        definition="Minutes from arrival to triage.",
        formula="Sum of triage minutes / patients",
        target="30 minutes",
        responsible="Head Nurse",
        schedule="Monthly",
    )
    fields.update(overrides)
    return KPIDefinition(**fields)


def test_find_report_record_matches_month_and_filters(make_record):
    records = [
        make_record(kpi_name="Taste", month=datetime.date(2024, 3, 1)),
        make_record(kpi_name="Portion Size", department="Pedia Ward", month=datetime.date(2024, 3, 1)),
    ]
    assert find_report_record(records, SectionName.ER, "2024-03").kpi_name == "Taste"
    assert find_report_record(records, SectionName.ER, "2024-03", department="Pedia Ward").kpi_name == "Portion Size"
    assert find_report_record(records, SectionName.LAB, "2024-03") is None
    assert find_report_record(records, SectionName.ER, "2024-04") is None


def test_find_definition():
    definitions = [_definition(), _definition(section=SectionName.LAB, kpi_name="Taste")]
    assert find_definition(definitions, SectionName.ER, "Triage Response Time").document_number == "QAD-EME-001"
    assert find_definition(definitions, SectionName.ER, "Taste") is None


def test_render_time_report(make_record):
    record = make_record(kpi_type=KPIType.TIME, kpi_name="Triage Response Time",
                         month=datetime.date(2024, 3, 1), target_time=30, actual_time=34.5,
                         time_unit="Mins", remarks="Staffing shortage")
    text = render_report(record, _definition())
    assert "Document No.:     QAD-EME-001" in text
    assert "Month:            March 2024" in text
    assert "Target:           30.00 Mins (lower is better)" in text
    assert "Variance:         4.50 Mins slower" in text
    assert "NON-CONFORMANT" in text
    assert "Remarks:          Staffing shortage" in text


def test_render_percentage_report_without_definition(make_record):
    text = render_report(make_record(target_pct=90, actual_pct=92.5))
    assert "Document No.:     N/A" in text
    assert "Actual:           92.50%" in text
    assert "Variance:         +2.50%" in text
    assert "Result:           CONFORMANT" in text
