"""Scan summaries: risk level, top findings, OWASP coverage and JSON export."""

import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Sequence

from apiprobe import __version__
from apiprobe.config import (
    Finding,
    FindingCategory,
    FindingType,
    OWASPApiCategory,
    ScanResult,
    SeverityLevel,
    severity_counts,
)

RISK_WEIGHTS = {
    SeverityLevel.CRITICAL.value: 10,
    SeverityLevel.HIGH.value: 7,
    SeverityLevel.MEDIUM.value: 4,
    SeverityLevel.LOW.value: 2,
    SeverityLevel.INFO.value: 1,
}

# (minimum average weight, level), checked in order
RISK_THRESHOLDS = (
    (8, "Critical"),
    (6, "High"),
    (4, "Medium"),
    (2, "Low"),
)

OWASP_NAMES = {
    OWASPApiCategory.API1_BOLA: "Broken Object Level Authorization",
    OWASPApiCategory.API2_BROKEN_AUTHENTICATION: "Broken Authentication",
    OWASPApiCategory.API3_BROKEN_PROPERTY_AUTHORIZATION: "Broken Object Property Level Authorization",
    OWASPApiCategory.API4_RESOURCE_CONSUMPTION: "Unrestricted Resource Consumption",
    OWASPApiCategory.API5_BROKEN_FUNCTION_AUTHORIZATION: "Broken Function Level Authorization",
    OWASPApiCategory.API6_SENSITIVE_BUSINESS_FLOWS: "Unrestricted Access to Sensitive Business Flows",
    OWASPApiCategory.API7_SSRF: "Server Side Request Forgery",
    OWASPApiCategory.API8_SECURITY_MISCONFIGURATION: "Security Misconfiguration",
    OWASPApiCategory.API9_INVENTORY_MANAGEMENT: "Improper Inventory Management",
    OWASPApiCategory.API10_UNSAFE_CONSUMPTION: "Unsafe Consumption of APIs",
}


def risk_score(counts: Dict[str, int]) -> float:
    """Severity-weighted average over all findings."""
    total = sum(counts.values())
    weighted = sum(RISK_WEIGHTS.get(level, 0) * count for level, count in counts.items())
    return weighted / max(total, 1)


def risk_level(counts: Dict[str, int]) -> str:
    score = risk_score(counts)
    for minimum, level in RISK_THRESHOLDS:
        if score >= minimum:
            return level
    return "Info"


def top_findings(findings: Sequence[Finding], limit: int = 5) -> List[Finding]:
    """Most severe findings first; ties keep scan order."""
    return sorted(findings, key=lambda f: -f.severity.rank)[:limit]


def recommendations(counts: Dict[str, int]) -> List[str]:
    items = []
    if counts.get("critical"):
        items.append("Immediate remediation required for critical vulnerabilities")
    if counts.get("high"):
        items.append("High-priority vulnerabilities should be addressed within 30 days")
    if not counts.get("critical") and not counts.get("high"):
        items.append("Implement continuous security testing in CI/CD pipeline")
    items.append("Regular security assessments recommended every 90 days")
    items.append("Security training for development team")
    return items


def owasp_summary(findings: Sequence[Finding]) -> Dict[str, Dict[str, Any]]:
    summary = {}
    for category, name in OWASP_NAMES.items():
        matching = [f for f in findings if f.owasp_category == category]
        worst = max(matching, key=lambda f: f.severity.rank, default=None)
        summary[category.value] = {
            "name": name,
            "compliant": not matching,
            "findings": len(matching),
            "severity": worst.severity.value if worst else None,
        }
    return summary


# (timeframe, severity, priority)
REMEDIATION_TIMELINE = (
    ("immediate", SeverityLevel.CRITICAL, "Critical"),
    ("30days", SeverityLevel.HIGH, "High"),
    ("90days", SeverityLevel.MEDIUM, "Medium"),
    ("180days", SeverityLevel.LOW, "Low"),
    ("monitoring", SeverityLevel.INFO, "Info"),
)


def _none_of(findings: Sequence[Finding], predicate) -> bool:
    return not any(predicate(f) for f in findings)


def _is_exposure(finding: Finding) -> bool:
    return "EXPOSURE" in finding.type.value


def compliance_checks(findings: Sequence[Finding]) -> Dict[str, Dict[str, bool]]:
    """Pass/fail controls per framework. Heuristic mapping, not an audit."""
    owasp = {f.owasp_category for f in findings}
    types = {f.type for f in findings}
    data_exposure = _none_of(findings, lambda f: f.category == FindingCategory.DATA_EXPOSURE)
    return {
        "PCI DSS": {
            "Data Protection": _none_of(
                findings, lambda f: "INJECTION" in f.type.value or _is_exposure(f)
            ),
            "Authentication": OWASPApiCategory.API2_BROKEN_AUTHENTICATION not in owasp,
            "Access Control": not owasp & {
                OWASPApiCategory.API1_BOLA,
                OWASPApiCategory.API5_BROKEN_FUNCTION_AUTHORIZATION,
            },
            "Logging": FindingType.NO_RATE_LIMITING not in types,
        },
        "GDPR": {
            "Data Minimization": _none_of(findings, _is_exposure),
            "Purpose Limitation": FindingType.MASS_ASSIGNMENT not in types,
            "Data Security": data_exposure,
            "Breach Notification": _none_of(findings, lambda f: f.severity == SeverityLevel.CRITICAL),
        },
        "HIPAA": {
            "Access Control": OWASPApiCategory.API1_BOLA not in owasp,
            "Audit Controls": FindingType.VERBOSE_ERROR not in types,
            "Data Encryption": data_exposure,
            "Security Management": OWASPApiCategory.API8_SECURITY_MISCONFIGURATION not in owasp,
        },
    }


def compliance_report(findings: Sequence[Finding]) -> Dict[str, Any]:
    """Framework checks plus a percentage score per framework."""
    owasp = owasp_summary(findings)
    frameworks = compliance_checks(findings)

    overall = {
        "OWASP API Top 10": round(100 * sum(1 for c in owasp.values() if c["compliant"]) / len(owasp)),
    }
    for name, checks in frameworks.items():
        overall[name] = round(100 * sum(1 for passed in checks.values() if passed) / len(checks))

    return {
        "frameworks": frameworks,
        "overall": overall,
        "remediation_timeline": remediation_timeline(findings),
    }


def remediation_timeline(findings: Sequence[Finding]) -> List[Dict[str, Any]]:
    counts = Counter(f.severity for f in findings)
    return [
        {"timeframe": timeframe, "findings": counts.get(severity, 0), "priority": priority}
        for timeframe, severity, priority in REMEDIATION_TIMELINE
    ]


def statistics(findings: Sequence[Finding]) -> Dict[str, Any]:
    return {
        "total_findings": len(findings),
        "by_severity": severity_counts(list(findings)),
        "by_type": dict(Counter(f.type.value for f in findings)),
        "by_category": dict(Counter(f.category.value for f in findings)),
        "by_endpoint": dict(Counter(f.endpoint or "(target)" for f in findings)),
    }


def build_json_report(result: ScanResult) -> Dict[str, Any]:
    counts = result.summary or severity_counts(result.findings)
    return {
        "metadata": {
            "generated_at": datetime.now().isoformat(timespec="seconds"),
            "version": __version__,
            "tool": "apiprobe",
        },
        "scan_id": result.scan_id,
        "target": result.target,
        "duration_seconds": result.duration_seconds,
        "cancelled": result.cancelled,
        "tests_executed": result.tests_executed,
        "summary": {
            "severity": counts,
            "total_findings": len(result.findings),
            "risk_level": risk_level(counts),
            "risk_score": round(risk_score(counts), 2),
        },
        "top_findings": [
            {
                "type": f.type.value,
                "severity": f.severity.value,
                "endpoint": f.endpoint,
                "description": f.description,
            }
            for f in top_findings(result.findings)
        ],
        "recommendations": recommendations(counts),
        "owasp": owasp_summary(result.findings),
        "compliance": compliance_report(result.findings),
        "statistics": statistics(result.findings),
        "findings": [f.model_dump(mode="json") for f in result.findings],
        "errors": result.errors,
    }


def save_json_report(result: ScanResult, output_path: str) -> None:
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w") as f:
        json.dump(build_json_report(result), f, indent=2)
