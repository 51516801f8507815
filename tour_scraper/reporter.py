"""Plain-text reports for website scans."""
from __future__ import annotations

from typing import Iterable, List

from .models import Activity, ScanResult
from .processor import summarise_activities

TOP_ACTIVITIES = 10
MAX_TITLE_WIDTH = 60


def _format_price(activity: Activity) -> str:
    if activity.price is None:
        return "–"
    return f"{activity.price:,.2f} {activity.currency}"


def _shorten(value: str, width: int = MAX_TITLE_WIDTH) -> str:
    value = value.replace("|", "/")
    if len(value) <= width:
        return value
    return value[: width - 1].rstrip() + "…"


def generate_activity_table(activities: Iterable[Activity]) -> str:
    """Return a markdown-style table of activities."""

    headers = ["Tour", "Location", "Duration", "Price"]
    rows: List[str] = [
        "| " + " | ".join(headers) + " |",
        "| " + " | ".join(["---"] * len(headers)) + " |",
    ]
    activity_list = list(activities)
    if not activity_list:
        rows.append("| No tours found |" + " |" * (len(headers) - 1))
        return "\n".join(rows)

    for activity in activity_list:
        columns = [
            _shorten(activity.title),
            _shorten(activity.location, 40),
            activity.duration,
            _format_price(activity),
        ]
        rows.append("| " + " | ".join(columns) + " |")
    return "\n".join(rows)


def build_report(scan: ScanResult) -> str:
    """Create a text report summarising a website scan."""

    summary = scan.summary or summarise_activities(scan.activities)
    lines: List[str] = [
        "Tour Scan Report",
        "================",
        "",
        f"Website: {scan.website_url}",
        f"Pages scanned: {len(scan.pages_scanned)}",
    ]
    if scan.failed_pages:
        lines.append(f"Pages failed: {len(scan.failed_pages)}")

    warnings = [message.strip() for message in scan.warnings if message]
    if warnings:
        lines.append("")
        lines.extend(f"WARNING: {message}" for message in warnings)

    lines.append("")
    lines.append("Summary:")
    if summary["count"] == 0:
        lines.append("- No tours found")
    else:
        lines.append(f"- {summary['count']} tours found")
        if summary["destinations"]:
            lines.append(f"- Destinations: {', '.join(summary['destinations'])}")
        price_range = summary["price_range"]
        if price_range:
            currencies = "/".join(summary["currencies"])
            lines.append(
                f"- Price range: {price_range['min']:,.2f} – {price_range['max']:,.2f} {currencies}"
            )
            lines.append(f"- Average price: {summary['average_price']:,.2f} {currencies}")
        else:
            lines.append("- No tours with a price")

    lines.append("")
    lines.append("Top tours:")
    lines.append(generate_activity_table(scan.activities[:TOP_ACTIVITIES]))

    links = [activity for activity in scan.activities[:TOP_ACTIVITIES] if activity.url]
    if links:
        lines.append("")
        lines.append("Links:")
        for activity in links:
            lines.append(f"- {activity.title}: {activity.url}")

    return "\n".join(lines)
