"""Scan reports: summaries, JSON export and HTML rendering."""

from apiprobe.report.html import generate_html_report, render_html_report
from apiprobe.report.summary import (
    build_json_report,
    compliance_report,
    recommendations,
    remediation_timeline,
    risk_level,
    risk_score,
    save_json_report,
    top_findings,
)

__all__ = [
    "build_json_report",
    "compliance_report",
    "generate_html_report",
    "recommendations",
    "remediation_timeline",
    "render_html_report",
    "risk_level",
    "risk_score",
    "save_json_report",
    "top_findings",
]
