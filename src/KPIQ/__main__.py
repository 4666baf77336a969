"""
Command-line interface for the KPIQ dashboard toolkit.
Reads KPI records from a local workbook/CSV or the remote sheet, keeps only
approved records for dashboard views, and prints summaries, tiers,
quarterly roll-ups, late submissions and printable reports.
"""

import dataclasses
import datetime
import logging
import pathlib
import sys
import typing
from enum import Enum

import click
import pandas as pd
from stairval.notepad import create_notepad

from .aggregation import aggregate_series_by_quarter, quarter_label
from .analysis import summarize, trend_metrics
from .definition import find_definition
from .loader import load_sheets_as_tables
from .mapper import RecordMapper
from .performance import (
    PerformanceStatus,
    classify_all_sections,
    classify_sections_in_range,
    section_detail,
)
from .record import KPIRecord, approved_only
from .report import find_report_record, render_report
from .section import SectionName
from .sheet_client import SheetClient, SheetClientError
from .submissions import export_late_submissions_csv, days_late, late_submissions

logger = logging.getLogger(__name__)

DATE = click.DateTime(formats=["%Y-%m-%d"])


@click.group()
@click.option("--verbose-logging", is_flag=True, help="Log debug output to stderr")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Append log output to this file")
def main(verbose_logging: bool = False, log_file: typing.Optional[str] = None):
    """KPIQ: KPI conformance, roll-ups and section performance for hospital QA."""
    handlers: list[logging.Handler] = []
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode="a", encoding="utf-8"))
    if verbose_logging:
        handlers.append(logging.StreamHandler(sys.stderr))
    if handlers:
        logging.basicConfig(
            level=logging.DEBUG if verbose_logging else logging.INFO,
            format="%(asctime)s [%(levelname)s] %(message)s",
            handlers=handlers,
        )


def _source_options(command):
    command = click.option(
        "--remote", is_flag=True, help="read records from the sheet endpoint (KPIQ_SHEET_URL)"
    )(command)
    command = click.option(
        "-r",
        "--records-path",
        "records_path",
        type=click.Path(exists=True, dir_okay=False),
        help="path to an .xlsx workbook or .csv file of KPI records",
    )(command)
    return command


def _filter_options(command):
    command = click.option("--date-to", type=DATE, default=None, help="last month to include (YYYY-MM-DD)")(command)
    command = click.option("--date-from", type=DATE, default=None, help="first month to include (YYYY-MM-DD)")(command)
    command = click.option("-d", "--department", default=None, help="department / type filter")(command)
    command = click.option("-k", "--kpi", "kpi_name", default=None, help="KPI name filter")(command)
    command = click.option("-s", "--section", default=None, help="section name or label")(command)
    return command


def _parse_section(label: typing.Optional[str]) -> typing.Optional[SectionName]:
    if label is None:
        return None
    try:
        return SectionName.from_label(label)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="--section")


def _as_date(value: typing.Optional[datetime.datetime]) -> typing.Optional[datetime.date]:
    return value.date() if value is not None else None


def _report_issues(notepad):
    # if there were errors, show them
    if notepad.has_errors(include_subsections=True):
        click.echo("Errors found in records:")
        for err in notepad.errors():
            click.echo(f"- {err.message}")
    # show any warnings but keep going
    if notepad.has_warnings(include_subsections=True):
        click.echo("Warnings found in records:")
        for w in notepad.warnings():
            click.echo(f"- {w.message}")


def _load_records(records_path: typing.Optional[str], remote: bool, notepad) -> list[KPIRecord]:
    if remote:
        try:
            return SheetClient().list_records(notepad)
        except SheetClientError as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)
    if not records_path:
        click.echo("Error: provide --records-path or --remote", err=True)
        sys.exit(1)
    logger.info("Loading records from %s", records_path)
    tables = load_sheets_as_tables(records_path)
    logger.debug("Loaded sheets: %s", list(tables.keys()))
    return RecordMapper().map_records(tables, notepad)


def _load_official(records_path, remote) -> list[KPIRecord]:
    # dashboard views never see drafts
    notepad = create_notepad("records")
    records = _load_records(records_path, remote, notepad)
    if notepad.has_errors(include_subsections=True):
        _report_issues(notepad)
    return approved_only(records)


def _filter(
    records: typing.Iterable[KPIRecord],
    section: typing.Optional[SectionName] = None,
    kpi_name: typing.Optional[str] = None,
    department: typing.Optional[str] = None,
    date_from: typing.Optional[datetime.date] = None,
    date_to: typing.Optional[datetime.date] = None,
) -> list[KPIRecord]:
    return [
        r for r in records
        if (section is None or r.section is section)
        and (kpi_name is None or r.kpi_name == kpi_name)
        and (department is None or r.department == department)
        and (date_from is None or r.month >= date_from)
        and (date_to is None or r.month <= date_to)
    ]


def records_frame(records: typing.Iterable[KPIRecord]) -> pd.DataFrame:
    """One row per record, enum labels and ISO dates, columns named after record fields."""
    rows = []
    for record in records:
        row = {}
        for field in dataclasses.fields(record):
            value = getattr(record, field.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, datetime.date):
                value = value.isoformat()
            row[field.name] = value
        rows.append(row)
    return pd.DataFrame(rows, columns=[f.name for f in dataclasses.fields(KPIRecord)])


@main.command(name="audit")
@_source_options
def audit(records_path: typing.Optional[str], remote: bool):
    """
    Load and map records, then report mapping problems and counts.
    """
    notepad = create_notepad("records")
    records = _load_records(records_path, remote, notepad)
    _report_issues(notepad)
    approved = approved_only(records)
    click.echo(f"Mapped {len(records)} records ({len(approved)} approved, {len(records) - len(approved)} draft)")


@main.command(name="summarize")
@_source_options
@_filter_options
@click.option("--quarterly", is_flag=True, help="aggregate the series by quarter first")
def summarize_command(records_path, remote, section, kpi_name, department, date_from, date_to, quarterly):
    """
    Print the narrative summary and headline metrics for a filtered series.
    """
    chosen = _parse_section(section)
    records = _filter(
        _load_official(records_path, remote),
        chosen, kpi_name, department, _as_date(date_from), _as_date(date_to),
    )
    if quarterly:
        # one roll-up per section/KPI/department series, never across series
        records = aggregate_series_by_quarter(records)

    section_label = chosen.value if chosen else "All Sections"
    click.echo(summarize(records, section_label, kpi_name or "General Operational KPI"))

    metrics = trend_metrics(records)
    if metrics is not None:
        click.echo("")
        click.echo(f"Success rate:    {metrics.success_rate:.1f}% ({metrics.success_count}/{metrics.success_count + metrics.fail_count})")
        click.echo(f"Average census:  {metrics.average_census} (total {metrics.total_census})")
        click.echo(f"Failure streak:  {metrics.failure_streak}")


@main.command(name="classify")
@_source_options
@click.option("--as-of", type=DATE, default=None, help="reference date for the rolling windows (default: today)")
def classify(records_path, remote, as_of):
    """
    Rolling 3/6/9-month performance tier for every section.
    """
    records = _load_official(records_path, remote)
    for perf in classify_all_sections(records, _as_date(as_of)):
        last = perf.last_failure_date.isoformat() if perf.last_failure_date else "-"
        click.echo(f"{perf.section.value:45} {perf.status.value:18} failures(3mo)={perf.failure_count_3_months} last={last}")


@main.command(name="leaderboard")
@_source_options
@click.option("--date-from", type=DATE, required=True, help="first month to include (YYYY-MM-DD)")
@click.option("--date-to", type=DATE, required=True, help="last month to include (YYYY-MM-DD)")
@click.option("-s", "--section", default=None, help="show per-KPI detail for one section")
def leaderboard(records_path, remote, date_from, date_to, section):
    """
    Group sections by tier for a chosen date range.
    """
    records = _load_official(records_path, remote)
    date_from, date_to = _as_date(date_from), _as_date(date_to)

    chosen = _parse_section(section)
    if chosen is not None:
        detail = section_detail(records, chosen, date_from, date_to)
        if not detail.kpi_ranking:
            click.echo("No performance data available for this section in the selected date range.")
            return
        click.echo(f"Best KPI:  {detail.best_kpi.kpi_name} ({detail.best_kpi.conformance_rate:.1f}% conformant)")
        click.echo(f"Worst KPI: {detail.worst_kpi.kpi_name} ({detail.worst_kpi.conformance_rate:.1f}% conformant)")
        marks = {True: "✓", False: "✗", None: "-"}
        width = max(len(row) for row in detail.rows)
        click.echo(" " * width + " " + " ".join(f"{m:>7}" for m in detail.months))
        for row in detail.rows:
            cells = " ".join(f"{marks[detail.heatmap[row][m]]:>7}" for m in detail.months)
            click.echo(f"{row:<{width}} {cells}")
        return

    results = classify_sections_in_range(records, date_from, date_to)
    for status in (PerformanceStatus.TOP_PERFORMER, PerformanceStatus.NEEDS_IMPROVEMENT,
                   PerformanceStatus.CRITICAL, PerformanceStatus.UNDEFINED):
        members = [r for r in results if r.status is status]
        click.echo(click.style(f"{status.value} ({len(members)})", bold=True))
        for perf in members:
            click.echo(f"  {perf.section.value} (failures: {perf.failure_count})")


@main.command(name="aggregate")
@_source_options
@_filter_options
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="write the roll-up to this CSV file")
def aggregate(records_path, remote, section, kpi_name, department, date_from, date_to, output):
    """
    Quarterly roll-up of every section/KPI/department series.
    """
    records = _filter(
        _load_official(records_path, remote),
        _parse_section(section), kpi_name, department, _as_date(date_from), _as_date(date_to),
    )
    aggregated = aggregate_series_by_quarter(records)
    frame = records_frame(aggregated)
    if output:
        frame.to_csv(output, index=False)
        click.echo(f"Wrote {len(frame)} quarterly records to {output}")
        return
    if frame.empty:
        click.echo("No records to aggregate.")
        return
    frame.insert(0, "quarter", [quarter_label(r.month) for r in aggregated])
    click.echo(frame[["quarter", "section", "kpi_name", "department", "census", "target_pct",
                      "actual_pct", "target_time", "actual_time"]].to_string(index=False))


@main.command(name="late")
@_source_options
@click.option("--date-from", type=DATE, default=None, help="earliest due date (YYYY-MM-DD)")
@click.option("--date-to", type=DATE, default=None, help="latest due date (YYYY-MM-DD)")
@click.option("-o", "--output", type=click.Path(dir_okay=False), default=None, help="export late submissions to CSV")
def late(records_path, remote, date_from, date_to, output):
    """
    List submissions made after their due date.
    """
    records = late_submissions(_load_official(records_path, remote), _as_date(date_from), _as_date(date_to))
    if output:
        out = export_late_submissions_csv(records, output)
        click.echo(f"Wrote {len(records)} late submissions to {out}")
        return
    if not records:
        click.echo("No late submissions in the selected range.")
        return
    for r in records:
        click.echo(f"{r.section.value:45} {r.kpi_name:30} due {r.due_date} submitted {r.date_submitted} ({days_late(r)} days late)")


@main.command(name="report")
@_source_options
@click.option("-s", "--section", required=True, help="section name or label")
@click.option("-m", "--month", required=True, help="reporting month (YYYY-MM)")
@click.option("-k", "--kpi", "kpi_name", default=None, help="KPI name")
@click.option("-d", "--department", default=None, help="department / type")
def report(records_path, remote, section, month, kpi_name, department):
    """
    Print a single-record KPI report.
    """
    chosen = _parse_section(section)
    definitions = []
    if remote:
        try:
            definitions = SheetClient().list_definitions(create_notepad("definitions"))
        except SheetClientError as e:
            click.secho(f"Error: {e}", fg="red", err=True)
            sys.exit(1)
    elif records_path:
        definitions = RecordMapper().map_definitions(load_sheets_as_tables(records_path), create_notepad("definitions"))

    record = find_report_record(_load_official(records_path, remote), chosen, month, kpi_name, department)
    if record is None:
        click.echo("No record found for the selected filters.")
        sys.exit(1)
    click.echo(render_report(record, find_definition(definitions, record.section, record.kpi_name)))


@main.command(name="fetch")
@click.option("-o", "--output", type=click.Path(dir_okay=False), required=True, help="CSV file to write")
@click.option("--force-refresh", is_flag=True, help="bypass the read cache")
def fetch(output: str, force_refresh: bool):
    """
    Download all records (drafts included) from the sheet endpoint into a CSV file.
    """
    notepad = create_notepad("records")
    try:
        client = SheetClient()
        if force_refresh:
            client.clear_cache()
        records = client.list_records(notepad)
    except SheetClientError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)
    _report_issues(notepad)

    out = pathlib.Path(output)
    records_frame(records).to_csv(out, index=False)
    click.echo(f"Saved {len(records)} records to {out}")


if __name__ == "__main__":
    main()
