"""Grading report exporters (JSON, Markdown, plain text, HTML)."""

from __future__ import annotations

import html
import re
from enum import Enum
from urllib.parse import quote

from app.schemas import FinalReport, GradingReport


class ExportFormat(str, Enum):
    JSON = "json"
    MARKDOWN = "markdown"
    TEXT = "text"
    HTML = "html"


MEDIA_TYPES = {
    ExportFormat.JSON: "application/json",
    ExportFormat.MARKDOWN: "text/markdown",
    ExportFormat.TEXT: "text/plain",
    ExportFormat.HTML: "text/html",
}

FILE_EXTENSIONS = {
    ExportFormat.JSON: "json",
    ExportFormat.MARKDOWN: "md",
    ExportFormat.TEXT: "txt",
    ExportFormat.HTML: "html",
}

_HTML_STYLE = """
    body { font-family: Arial, sans-serif; margin: 20px; color: #333; }
    .container { max-width: 900px; margin: 0 auto; }
    h1 { color: #2c3e50; border-bottom: 3px solid #3498db; padding-bottom: 10px; }
    h2 { color: #34495e; margin-top: 25px; }
    .grade-box { background: #667eea; color: white; padding: 20px; border-radius: 8px; font-size: 24px; font-weight: bold; margin: 20px 0; }
    .metadata { background: #ecf0f1; padding: 15px; border-radius: 5px; margin-top: 20px; }
    .warning { background: #fff3cd; border-left: 4px solid #ffc107; padding: 10px; margin: 10px 0; }
    .error { background: #f8d7da; border-left: 4px solid #dc3545; padding: 10px; margin: 10px 0; }
    .provider { color: #7f8c8d; font-size: 12px; }
"""


def _fmt(value: object) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _display_grade(report: FinalReport) -> str:
    return "N/A" if report.grade is None else str(report.grade)


def export_json(report: GradingReport) -> str:
    return report.model_dump_json(by_alias=True, indent=2)


def export_markdown(report: GradingReport) -> str:
    if not report.success or report.report is None:
        return (
            "# Grading Report - Error\n\n"
            f"**Provider:** {report.provider}\n"
            f"**Error:** {report.error}\n"
            f"**Timestamp:** {report.timestamp}\n"
        )

    final = report.report
    lines = [
        "# Comic Book Grading Report",
        "",
        f"**Provider:** {report.provider}  ",
        f"**Timestamp:** {report.timestamp}",
        "",
        "## Grade",
        "",
        f"**{_display_grade(final)}** - {final.grade_label}",
        "",
        "## Analysis",
        "",
        "### Defects",
        final.analysis.defects,
        "",
        "### Page Quality",
        final.analysis.page_quality,
        "",
        "### Restoration",
        final.analysis.restoration,
    ]
    restoration = final.metadata.restoration_analysis
    if restoration is not None:
        lines.append(f"*Impact: {restoration.impact}*")
    lines += [
        "",
        "## Suggestions",
        "",
        "### Repair/Improvement",
        final.suggestions.repair,
        "",
        "### Prevention",
        final.suggestions.prevention,
        "",
        "## Metadata",
        "",
        f"- Grade was capped: {_fmt(final.metadata.grade_was_capped)}",
        f"- Original grade: {_fmt(final.metadata.original_grade)}",
        f"- Page quality cap: {_fmt(final.metadata.page_quality_cap)}",
    ]
    if final.metadata.warnings:
        lines += ["", "### Warnings", *[f"- {warning}" for warning in final.metadata.warnings]]
    if final.metadata.errors:
        lines += ["", "### Errors", *[f"- {error}" for error in final.metadata.errors]]
    return "\n".join(lines) + "\n"


def export_text(report: GradingReport) -> str:
    if not report.success or report.report is None:
        return (
            "GRADING REPORT - ERROR\n\n"
            f"Provider: {report.provider}\n"
            f"Error: {report.error}\n"
            f"Timestamp: {report.timestamp}\n"
        )

    final = report.report
    lines = [
        "GRADING REPORT",
        "================",
        "",
        f"Provider: {report.provider}",
        f"Timestamp: {report.timestamp}",
        "",
        f"GRADE: {_display_grade(final)} - {final.grade_label}",
        "",
        "GRADING ANALYSIS",
        "----------------",
        "",
        "Defects:",
        final.analysis.defects,
        "",
        "Page Quality:",
        final.analysis.page_quality,
        "",
        "Restoration:",
        final.analysis.restoration,
        "",
        "SUGGESTIONS",
        "-----------",
        "",
        "Repair/Improvement:",
        final.suggestions.repair,
        "",
        "Prevention:",
        final.suggestions.prevention,
        "",
        "METADATA",
        "--------",
        "",
        f"Grade was capped: {_fmt(final.metadata.grade_was_capped)}",
        f"Original grade: {_fmt(final.metadata.original_grade)}",
        f"Page quality cap: {_fmt(final.metadata.page_quality_cap)}",
    ]
    if final.metadata.warnings:
        lines += ["", "Warnings:", *[f"- {warning}" for warning in final.metadata.warnings]]
    if final.metadata.errors:
        lines += ["", "Errors:", *[f"- {error}" for error in final.metadata.errors]]
    return "\n".join(lines) + "\n"


def _html_section(title: str, body: str) -> str:
    return f"<h3>{html.escape(title)}</h3>\n<p>{html.escape(body)}</p>"


def export_html(report: GradingReport) -> str:
    if not report.success or report.report is None:
        content = f'<div class="error"><strong>Error:</strong> {html.escape(report.error or "")}</div>'
    else:
        final = report.report
        parts = [
            f'<div class="grade-box">{html.escape(_display_grade(final))} - {html.escape(final.grade_label)}</div>',
            '<div class="section">',
            "<h2>Grading Analysis</h2>",
            _html_section("Defects", final.analysis.defects),
            _html_section("Page Quality", final.analysis.page_quality),
            _html_section("Restoration", final.analysis.restoration),
            "</div>",
            '<div class="section">',
            "<h2>Suggestions</h2>",
            _html_section("Repair/Improvement", final.suggestions.repair),
            _html_section("Prevention", final.suggestions.prevention),
            "</div>",
            '<div class="metadata">',
            "<h3>Metadata</h3>",
            f"<p><strong>Grade was capped:</strong> {_fmt(final.metadata.grade_was_capped)}</p>",
            f"<p><strong>Original grade:</strong> {_fmt(final.metadata.original_grade)}</p>",
            f"<p><strong>Page quality cap:</strong> {_fmt(final.metadata.page_quality_cap)}</p>",
        ]
        if final.metadata.warnings:
            parts.append("<h4>Warnings</h4>")
            parts += [f'<div class="warning">{html.escape(warning)}</div>' for warning in final.metadata.warnings]
        if final.metadata.errors:
            parts.append("<h4>Errors</h4>")
            parts += [f'<div class="error">{html.escape(error)}</div>' for error in final.metadata.errors]
        parts.append("</div>")
        content = "\n".join(parts)

    return (
        "<!DOCTYPE html>\n"
        "<html>\n<head>\n"
        '<meta charset="UTF-8">\n'
        '<meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
        "<title>Comic Grading Report</title>\n"
        f"<style>{_HTML_STYLE}</style>\n"
        "</head>\n<body>\n"
        '<div class="container">\n'
        "<h1>Comic Book Grading Report</h1>\n"
        f'<p class="provider">Provider: {html.escape(report.provider)} | Timestamp: {html.escape(report.timestamp)}</p>\n'
        f"{content}\n"
        "</div>\n</body>\n</html>\n"
    )


_EXPORTERS = {
    ExportFormat.JSON: export_json,
    ExportFormat.MARKDOWN: export_markdown,
    ExportFormat.TEXT: export_text,
    ExportFormat.HTML: export_html,
}


def export_report(report: GradingReport, export_format: ExportFormat | str) -> str:
    return _EXPORTERS[ExportFormat(export_format)](report)


def export_filename(report: GradingReport, export_format: ExportFormat | str, comic_name: str | None = None) -> str:
    stem = (comic_name or "comic").strip().replace(" ", "_") or "comic"
    stamp = report.timestamp.replace(":", "-")
    return f"{stem}_grade_{stamp}.{FILE_EXTENSIONS[ExportFormat(export_format)]}"


_UNSAFE_FILENAME_RE = re.compile(r"[^A-Za-z0-9._-]+")


def content_disposition(filename: str) -> str:
    """Attachment header with an ASCII ``filename`` and the real name in ``filename*``."""
    fallback = _UNSAFE_FILENAME_RE.sub("_", filename).strip("_.") or "report"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
