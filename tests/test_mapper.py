"""
Focused tests for RecordMapper and the sheet loader.

These verify:
- header normalization (camelCase and short sheet keys),
- per-row defaults and sentinel handling,
- errors and warnings collected on the notepad.
"""

import datetime

import pandas as pd
import pytest
from stairval.notepad import create_notepad

from KPIQ.loader import load_sheets_as_tables, normalize_key
from KPIQ.mapper import RecordMapper
from KPIQ.section import KPIType, RecordStatus, SectionName


@pytest.mark.parametrize(
    "header, expected",
    [("kpiName", "kpi_name"), ("dateSubmitted", "date_submitted"), ("tp", "target_pct"),
     ("Census (patients)", "census"), ("Due Date", "due_date"), ("k", "kpi_name")],
)
def test_normalize_key(header, expected):
    assert normalize_key(header) == expected


def test_parse_row_with_short_keys():
    """The compact sheet keys map onto record fields."""
    notepad = create_notepad("records")
    row = {"i": "x1", "s": "Laboratory", "k": "Taste", "d": "Overall", "t": "PERCENTAGE",
           "m": "2024-03-15T00:00:00.000Z", "c": "42", "tp": 90, "ap": "93.5"}
    record = RecordMapper().parse_record_row(row, "Records", 0, notepad)
    assert record.id == "x1"
    assert record.section is SectionName.LAB
    assert record.month == datetime.date(2024, 3, 1)
    assert record.census == 42
    assert record.actual_pct == 93.5
    assert record.status is RecordStatus.APPROVED
    assert not notepad.has_errors(include_subsections=True)


def test_parse_row_defaults():
    notepad = create_notepad("records")
    row = pd.Series({"section": "ER", "kpiName": "Triage", "kpiType": "TIME", "month": None,
                     "targetTime": 30, "actualTime": float("nan"), "census": None})
    mapper = RecordMapper(today=datetime.date(2024, 7, 19))
    record = mapper.parse_record_row(row, "Records", 3, notepad)
    assert record.id == "gen-Records-3"
    assert record.month == datetime.date(2024, 7, 1)
    assert record.census == 0
    assert record.actual_time is None
    assert record.target_pct == 0.0
    assert record.actual_pct is None
    assert record.kpi_type is KPIType.TIME


def test_unknown_section_is_an_error_and_skipped():
    notepad = create_notepad("records")
    row = {"section": "Cafeteria", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-01-01"}
    assert RecordMapper().parse_record_row(row, "Records", 0, notepad) is None
    assert notepad.has_errors(include_subsections=True)


def test_negative_census_is_an_error():
    notepad = create_notepad("records")
    row = {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-01-01",
           "census": -5, "targetPct": 90}
    assert RecordMapper().parse_record_row(row, "Records", 0, notepad) is None
    assert notepad.has_errors(include_subsections=True)


def test_missing_targets_warn_but_keep_row():
    notepad = create_notepad("records")
    row = {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-01-01", "actualPct": 50}
    record = RecordMapper().parse_record_row(row, "Records", 0, notepad)
    assert record is not None
    assert notepad.has_warnings(include_subsections=True)
    assert not notepad.has_errors(include_subsections=True)


def test_non_numeric_value_warns():
    notepad = create_notepad("records")
    row = {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-01-01",
           "targetPct": 90, "actualPct": "n/a"}
    record = RecordMapper().parse_record_row(row, "Records", 0, notepad)
    assert record.actual_pct is None
    assert notepad.has_warnings(include_subsections=True)


def test_load_csv_and_map(fpath_records_csv):
    tables = load_sheets_as_tables(fpath_records_csv)
    assert list(tables) == ["records"]
    notepad = create_notepad("records")
    records = RecordMapper().map_records(tables, notepad)
    # r7 has an unknown section
    assert [r.id for r in records] == ["r1", "r2", "r3", "r4", "r5", "r6"]
    assert notepad.has_errors(include_subsections=True)
    assert records[5].status is RecordStatus.DRAFT
    assert records[0].time_unit == "Mins"
    assert records[0].due_date == datetime.date(2024, 2, 5)


def test_workbook_with_records_and_definitions(tmp_path):
    records = pd.DataFrame({
        "Section": ["Pharmacy"],
        "KPI Name": ["Patient Counseling"],
        "Department": ["Overall"],
        "KPI Type": ["PERCENTAGE"],
        "Month": [pd.Timestamp("2024-05-01")],
        "Census": [55],
        "Target Pct": [95],
        "Actual Pct": [97],
    })
    definitions = pd.DataFrame({
        "id": ["d1"],
        "section": ["Pharmacy"],
        "documentNumber": ["QAD-PHA-001"],
        "kpiName": ["Patient Counseling"],
        "targetPct": [95],
    })
    path = tmp_path / "wb.xlsx"
    with pd.ExcelWriter(path, engine="openpyxl") as w:
        records.to_excel(w, sheet_name="KPI", index=False)
        definitions.to_excel(w, sheet_name="Definitions", index=False)

    tables = load_sheets_as_tables(str(path))
    notepad = create_notepad("records")
    mapper = RecordMapper()
    (record,) = mapper.map_records(tables, notepad)
    assert record.section is SectionName.PHARMACY
    assert record.month == datetime.date(2024, 5, 1)
    assert record.actual_pct == 97

    (definition,) = mapper.map_definitions(tables, notepad)
    assert definition.document_number == "QAD-PHA-001"
    assert definition.target_pct == 95
    assert not notepad.has_errors(include_subsections=True)


def test_missing_records_sheet_is_an_error():
    notepad = create_notepad("records")
    tables = {"Other": pd.DataFrame({"foo": [1]})}
    assert RecordMapper().map_records(tables, notepad) == []
    assert notepad.has_errors(include_subsections=True)


def test_infinite_census_is_ignored_not_fatal():
    notepad = create_notepad("records")
    rows = [
        {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-01-01",
         "census": "inf", "targetPct": 90, "actualPct": 95},
        {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "month": "2024-02-01",
         "census": 12, "targetPct": 90, "actualPct": 95},
    ]
    records = RecordMapper().map_record_rows(rows, "Records", notepad)
    assert [r.census for r in records] == [0, 12]
    assert any("census" in w.message for w in notepad.warnings())


def test_missing_month_warns():
    notepad = create_notepad("records")
    row = {"section": "ER", "kpiName": "Taste", "kpiType": "PERCENTAGE", "targetPct": 90, "actualPct": 95}
    record = RecordMapper(today=datetime.date(2024, 7, 19)).parse_record_row(row, "Records", 0, notepad)
    assert record.month == datetime.date(2024, 7, 1)
    assert any("reporting month" in w.message for w in notepad.warnings())
