import pathlib
import re

import pandas as pd

# Header aliases → KPIRecord / KPIDefinition field names.
# Short keys are the compact column names used by the remote sheet.
RENAME_MAP = {
    "i": "id",
    "s": "section",
    "k": "kpi_name",
    "kpi": "kpi_name",
    "d": "department",
    "type": "department",
    "t": "kpi_type",
    "m": "month",
    "c": "census",
    "tt": "target_time",
    "at": "actual_time",
    "u": "time_unit",
    "unit": "time_unit",
    "tp": "target_pct",
    "ap": "actual_pct",
    "dd": "due_date",
    "ds": "date_submitted",
    "rem": "remarks",
}

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def normalize_key(name) -> str:
    """
    Normalize one header to snake_case lowercase and apply RENAME_MAP:
    "kpiName" → "kpi_name", "Target (%)" → "target", "tp" → "target_pct".
    """
    key = str(name).strip()
    key = re.sub(r"\s*\(.*?\)", "", key)  # drop any "(…)"
    key = _CAMEL_BOUNDARY.sub("_", key)
    key = re.sub(r"[\s\-]+", "_", key).replace(":", "").lower()
    return RENAME_MAP.get(key, key)


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    return df.rename(columns={column: normalize_key(column) for column in df.columns})


def load_sheets_as_tables(workbook_path: str) -> dict[str, pd.DataFrame]:
    """
    Read each worksheet (or a single CSV file) into a DataFrame:
      - first row = header
      - normalize all headers to snake_case lowercase
      - apply renames from RENAME_MAP
    CSV files produce one table named after the file stem.
    """
    path = pathlib.Path(workbook_path)
    tables: dict[str, pd.DataFrame] = {}

    if path.suffix.lower() == ".csv":
        tables[path.stem] = normalize_columns(pd.read_csv(path, header=0))
        return tables

    excel = pd.ExcelFile(path, engine="openpyxl")
    for sheet_name in excel.sheet_names:
        df = pd.read_excel(excel, sheet_name=sheet_name, header=0, engine="openpyxl")
        tables[sheet_name] = normalize_columns(df)

    return tables
