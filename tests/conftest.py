import datetime
import os

import pytest

from KPIQ.record import KPIRecord
from KPIQ.section import KPIType, RecordStatus, SectionName


@pytest.fixture(scope="session")
def fpath_test_dir() -> str:
    """
    Path to `tests/data/` folder.
    """
    return os.path.join(os.path.dirname(__file__), "data")


@pytest.fixture(scope="session")
def fpath_records_csv(fpath_test_dir: str) -> str:
    return os.path.join(fpath_test_dir, "records.csv")


@pytest.fixture
def make_record():
    """
    Factory for KPIRecord with percentage defaults; override any field by keyword.
    """
    counter = {"n": 0}

    def _make(**overrides) -> KPIRecord:
        counter["n"] += 1
        fields = dict(
            id=f"rec-{counter['n']}",
            section=SectionName.ER,
            kpi_name="Patient Satisfaction",
            department="Overall",
            kpi_type=KPIType.PERCENTAGE,
            month=datetime.date(2024, 1, 1),
            census=100,
            target_pct=90.0,
            actual_pct=95.0,
            status=RecordStatus.APPROVED,
        )
        fields.update(overrides)
        return KPIRecord(**fields)

    return _make
