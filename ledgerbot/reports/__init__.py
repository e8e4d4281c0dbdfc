"""Summary and report generation."""

from ledgerbot.reports.summary import (
    calculate_summary,
    filter_by_range,
    month_range,
    parse_ledger_date,
    render_summary_report,
    year_range,
)

__all__ = [
    "calculate_summary",
    "filter_by_range",
    "month_range",
    "parse_ledger_date",
    "render_summary_report",
    "year_range",
]
