import abc
import datetime
import math
import typing

import pandas as pd
from dataclasses import dataclass
from stairval.notepad import Notepad

from .definition import KPIDefinition
from .loader import normalize_key
from .record import KPIRecord
from .section import KPIType, RecordStatus, SectionName

# Minimal required columns (after renaming) to identify each sheet type
RECORD_KEY_COLUMNS = {"section", "kpi_name", "kpi_type", "month"}
DEFINITION_KEY_COLUMNS = {"section", "kpi_name", "document_number"}

# Sheet names (casefolded) accepted for each table kind
KNOWN_SHEET_ALIASES: dict[str, set[str]] = {"records": {"records", "record", "kpi", "kpis", "data"},
                                            "definitions": {"definitions", "definition", "kpi_definitions"}}

Row = typing.Union[pd.Series, typing.Mapping[str, typing.Any]]


@dataclass
class TypedTables:
    """
    Explicit, typed access to workbook sheets.
    Any field can be `None`, meaning that the sheet not provided.
    """
    records: pd.DataFrame | None
    definitions: pd.DataFrame | None


class TableMapper(metaclass=abc.ABCMeta):
    @abc.abstractmethod
    def map_records(
            self, tables: dict[str, pd.DataFrame], notepad: Notepad
    ) -> typing.Sequence[KPIRecord]:
        raise NotImplementedError


class RecordMapper(TableMapper):
    def __init__(self, today: typing.Optional[datetime.date] = None):
        """
        `today` fills in the reporting month of rows that have none.
        """
        self._today = today

    # Value coercion helpers
    @staticmethod
    def _is_blank(value: typing.Any) -> bool:
        if value is None:
            return True
        if isinstance(value, str):
            return not value.strip()
        try:
            return bool(pd.isna(value))
        except (TypeError, ValueError):
            return False

    @staticmethod
    def _to_float(value: typing.Any) -> typing.Optional[float]:
        """
        Numeric parsing where blanks stay None:
        - 12, '12', ' 12.5 ' → float
        - None, NaN, '' → None
        Raises ValueError on non-numeric text and on infinities.
        """
        if RecordMapper._is_blank(value) or isinstance(value, bool):
            return None
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
        if not math.isfinite(number):
            raise ValueError(f"non-finite value {value!r}")
        return number

    @staticmethod
    def _to_date(value: typing.Any) -> typing.Optional[datetime.date]:
        """
        Accepts date, datetime, pandas Timestamp or ISO-like strings.
        Blank or unparseable values → None.
        """
        if RecordMapper._is_blank(value):
            return None
        if isinstance(value, datetime.datetime):
            return value.date()
        if isinstance(value, datetime.date):
            return value
        parsed = pd.to_datetime(str(value).strip(), errors="coerce")
        if pd.isna(parsed):
            return None
        return parsed.date()

    @staticmethod
    def _to_text(value: typing.Any) -> typing.Optional[str]:
        if RecordMapper._is_blank(value):
            return None
        return str(value).strip()

    @staticmethod
    def _normalize_row(row: Row) -> dict[str, typing.Any]:
        return {normalize_key(key): value for key, value in row.items()}

    def _month_start(self, value: typing.Any) -> datetime.date:
        month = self._to_date(value) or self._today or datetime.date.today()
        return month.replace(day=1)

    def parse_record_row(self, row: Row, sheet_name: str, index: typing.Any,
                         notepad: Notepad) -> typing.Optional[KPIRecord]:
        """
        Parse a single row into a KPIRecord.
        Returns None if validation fails for this row.
        """
        fields = self._normalize_row(row)
        where = f"Sheet {sheet_name!r}, row {index}"

        try:
            section = SectionName.from_label(fields.get("section", ""))
            kpi_type = KPIType.from_label(fields.get("kpi_type", ""))
            status = RecordStatus.from_label(self._to_text(fields.get("status")))
        except ValueError as e:
            notepad.add_error(f"{where}: {e}")
            return None

        numbers: dict[str, typing.Optional[float]] = {}
        for name in ("census", "target_time", "actual_time", "target_pct", "actual_pct"):
            try:
                numbers[name] = self._to_float(fields.get(name))
            except (TypeError, ValueError):
                notepad.add_warning(f"{where}: unusable {name} {fields.get(name)!r} ignored")
                numbers[name] = None

        if numbers["target_time"] is None and numbers["target_pct"] is None:
            notepad.add_warning(f"{where}: no time or percentage target set")
        if self._to_date(fields.get("month")) is None:
            notepad.add_warning(f"{where}: no reporting month, using the current month")

        try:
            record = KPIRecord(
                id=self._to_text(fields.get("id")) or f"gen-{sheet_name}-{index}",
                section=section,
                kpi_name=self._to_text(fields.get("kpi_name")) or "",
                department=self._to_text(fields.get("department")) or "",
                kpi_type=kpi_type,
                month=self._month_start(fields.get("month")),
                census=int(numbers["census"] or 0),
                target_time=numbers["target_time"],
                actual_time=numbers["actual_time"],
                time_unit=self._to_text(fields.get("time_unit")),
                target_pct=numbers["target_pct"] or 0.0,
                actual_pct=numbers["actual_pct"],
                due_date=self._to_date(fields.get("due_date")),
                date_submitted=self._to_date(fields.get("date_submitted")),
                remarks=self._to_text(fields.get("remarks")),
                status=status,
            )
        except (ValueError, TypeError) as e:
            notepad.add_error(f"{where}: {e}")
            return None

        return record

    def parse_definition_row(self, row: Row, sheet_name: str, index: typing.Any,
                             notepad: Notepad) -> typing.Optional[KPIDefinition]:
        fields = self._normalize_row(row)
        where = f"Sheet {sheet_name!r}, row {index}"
        try:
            section = SectionName.from_label(fields.get("section", ""))
            kpi_type_label = self._to_text(fields.get("kpi_type"))
            kpi_type = KPIType.from_label(kpi_type_label) if kpi_type_label else None
            target_time = self._to_float(fields.get("target_time"))
            target_pct = self._to_float(fields.get("target_pct"))
        except (ValueError, TypeError) as e:
            notepad.add_error(f"{where}: {e}")
            return None

        def text(name: str) -> str:
            return self._to_text(fields.get(name)) or ""

        return KPIDefinition(
            id=text("id") or f"def-{sheet_name}-{index}",
            section=section,
            document_number=text("document_number"),
            quality_objective=text("quality_objective"),
            kpi_name=text("kpi_name"),
            definition=text("definition"),
            formula=text("formula"),
            target=text("target"),
            responsible=text("responsible"),
            schedule=text("schedule"),
            target_time=target_time,
            target_pct=target_pct,
            time_unit=self._to_text(fields.get("time_unit")),
            department=self._to_text(fields.get("department")),
            kpi_type=kpi_type,
        )

    def map_record_rows(self, rows: typing.Iterable[Row], sheet_name: str,
                        notepad: Notepad) -> list[KPIRecord]:
        records: list[KPIRecord] = []
        for index, row in enumerate(rows):
            record = self.parse_record_row(row, sheet_name, index, notepad)
            if record is not None:
                records.append(record)
        return records

    def map_definition_rows(self, rows: typing.Iterable[Row], sheet_name: str,
                            notepad: Notepad) -> list[KPIDefinition]:
        definitions: list[KPIDefinition] = []
        for index, row in enumerate(rows):
            definition = self.parse_definition_row(row, sheet_name, index, notepad)
            if definition is not None:
                definitions.append(definition)
        return definitions

    @staticmethod
    def _by_alias(tables: dict[str, pd.DataFrame], kind: str, key_columns: set[str]) -> pd.DataFrame | None:
        # explicit sheet names first, then the first sheet carrying the key columns
        aliases = KNOWN_SHEET_ALIASES[kind]
        for sheet_name, df in tables.items():
            if sheet_name.strip().casefold() in aliases:
                return df
        for df in tables.values():
            if key_columns.issubset(df.columns):
                return df
        return None

    def _choose_named_tables(self, tables: dict[str, pd.DataFrame], notepad: Notepad) -> TypedTables:
        """
        Prefer explicit sheet names (plus common aliases); otherwise
        classify sheets by their key columns.
        """
        selected = TypedTables(
            records=self._by_alias(tables, "records", RECORD_KEY_COLUMNS),
            definitions=self._by_alias(tables, "definitions", DEFINITION_KEY_COLUMNS),
        )
        if selected.records is None:
            notepad.add_error("Missing required sheet: 'records'.")
        return selected

    def map_records(self, tables: dict[str, pd.DataFrame], notepad: Notepad) -> list[KPIRecord]:
        """
        Sheet-level wrapper for record rows:
          - pick the records sheet
          - require the key record columns
          - delegate row conversion to parse_record_row
        """
        df = self._choose_named_tables(tables, notepad).records
        if df is None:
            return []
        missing = sorted(RECORD_KEY_COLUMNS - set(df.columns))
        if missing:
            notepad.add_error(f"Sheet 'records': missing required columns: {missing}")
            return []
        return self.map_record_rows((row for _, row in df.iterrows()), "records", notepad)

    def map_definitions(self, tables: dict[str, pd.DataFrame], notepad: Notepad) -> list[KPIDefinition]:
        """Definitions are optional; a workbook without them maps to []."""
        df = self._by_alias(tables, "definitions", DEFINITION_KEY_COLUMNS)
        if df is None:
            return []
        return self.map_definition_rows((row for _, row in df.iterrows()), "definitions", notepad)
