import pytest
from KPIQ.conformance import actual_value, is_conformant, is_lower_better
from KPIQ.section import KPIType


def test_higher_is_better_percentage_passes(make_record):
    """Patient Satisfaction 95% against a 90% target conforms."""
    record = make_record(kpi_name="Patient Satisfaction", target_pct=90, actual_pct=95)
    assert not is_lower_better(record)
    assert is_conformant(record)


def test_reattendance_rate_is_lower_better(make_record):
    """Reattendance 8% against a 5% ceiling fails."""
    record = make_record(kpi_name="Reattendance Rate", target_pct=5, actual_pct=8)
    assert is_lower_better(record)
    assert not is_conformant(record)


@pytest.mark.parametrize("kpi_name", ["Patient Satisfaction", "Overstaying", "anything"])
def test_time_records_are_always_lower_better(make_record, kpi_name):
    record = make_record(kpi_type=KPIType.TIME, kpi_name=kpi_name, target_time=30, actual_time=20)
    assert is_lower_better(record)


@pytest.mark.parametrize("kpi_name", ["OVERBOARDING", " overstaying "])
def test_allow_list_is_case_insensitive(make_record, kpi_name):
    assert is_lower_better(make_record(kpi_name=kpi_name))


def test_time_missing_actual_fails(make_record):
    record = make_record(kpi_type=KPIType.TIME, target_time=30, actual_time=None)
    assert not is_conformant(record)


def test_time_missing_target_treated_as_zero(make_record):
    assert is_conformant(make_record(kpi_type=KPIType.TIME, target_time=None, actual_time=0))
    assert not is_conformant(make_record(kpi_type=KPIType.TIME, target_time=None, actual_time=1))


def test_time_equal_to_target_passes(make_record):
    assert is_conformant(make_record(kpi_type=KPIType.TIME, target_time=30, actual_time=30))


def test_no_percentage_data_passes_zero_target(make_record):
    """Absent actual and zero target compare as 0 >= 0."""
    assert is_conformant(make_record(target_pct=0, actual_pct=None))


def test_missing_actual_fails_positive_target(make_record):
    assert not is_conformant(make_record(target_pct=90, actual_pct=None))


def test_monotonic_in_actual_pct(make_record):
    """Raising the actual never turns a pass into a fail."""
    results = [is_conformant(make_record(target_pct=90, actual_pct=v)) for v in range(80, 101, 2)]
    first_pass = results.index(True)
    assert all(results[first_pass:])


def test_nan_values_fall_back_to_sentinels(make_record):
    record = make_record(kpi_type=KPIType.TIME, target_time=30, actual_time=float("nan"))
    assert not is_conformant(record)
    assert actual_value(record) is None


def test_actual_value_follows_kind(make_record):
    assert actual_value(make_record(actual_pct=91.5)) == 91.5
    assert actual_value(make_record(kpi_type=KPIType.TIME, actual_time=12, actual_pct=50)) == 12.0
