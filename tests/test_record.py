import pytest
from KPIQ.record import DualMetric, PercentageMetric, TimeMetric, approved_only
from KPIQ.section import KPIType, RecordStatus


def test_negative_census_raises(make_record):
    with pytest.raises(ValueError):
        make_record(census=-1)


def test_missing_census_becomes_zero(make_record):
    assert make_record(census=None).census == 0


def test_section_must_be_enum(make_record):
    with pytest.raises(ValueError):
        make_record(section="Emergency Room Complex")


def test_metric_variants(make_record):
    """The metric property reports which target/actual pairs are meaningful."""
    pct = make_record()
    assert pct.metric == PercentageMetric(target=90.0, actual=95.0)

    timed = make_record(kpi_type=KPIType.TIME, target_time=30.0, actual_time=25.0,
                        time_unit="Mins", actual_pct=None, target_pct=0.0)
    assert timed.metric == TimeMetric(target=30.0, actual=25.0, unit="Mins")

    dual = make_record(kpi_type=KPIType.TIME, target_time=3.0, actual_time=2.0, time_unit="Days")
    assert isinstance(dual.metric, DualMetric)
    assert dual.metric.time.unit == "Days"
    assert dual.metric.pct.actual == 95.0


def test_approved_only_drops_drafts(make_record):
    records = [make_record(), make_record(status=RecordStatus.DRAFT), make_record()]
    kept = approved_only(records)
    assert len(kept) == 2
    assert all(r.is_approved for r in kept)


def test_primary_metric_follows_kind(make_record):
    dual = make_record(kpi_type=KPIType.TIME, target_time=3.0, actual_time=2.0, time_unit="Days")
    assert dual.primary_metric == TimeMetric(target=3.0, actual=2.0, unit="Days")

    # a stray time target does not turn a percentage KPI into a time one
    pct = make_record(target_time=30.0, actual_pct=None)
    assert isinstance(pct.metric, TimeMetric)
    assert pct.primary_metric == PercentageMetric(target=90.0, actual=None)

    bare_time = make_record(kpi_type=KPIType.TIME, actual_pct=None)
    assert bare_time.primary_metric == TimeMetric(target=None, actual=None, unit=None)
