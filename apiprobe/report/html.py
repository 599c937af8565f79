from datetime import datetime
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape

from apiprobe.config import ScanResult, severity_counts
from apiprobe.report.summary import owasp_summary, recommendations, risk_level, top_findings


_env = Environment(
    loader=FileSystemLoader(Path(__file__).parent / "templates"),
    autoescape=select_autoescape(["html"]),
)

SEVERITY_COLORS = {
    "critical": "#dc2626",
    "high": "#ea580c",
    "medium": "#ca8a04",
    "low": "#16a34a",
    "info": "#2563eb",
}


def _truncate_filter(value, length=255, end=''):
    if isinstance(value, str) and len(value) > length:
        return value[:length] + end
    return value


_env.filters['truncate'] = _truncate_filter


def _bar(label, value, height, color):
    return f'''
            <div class="bar">
                <div class="bar-value" style="color: {color}">{value}</div>
                <div class="bar-fill" style="height: {height}px; background: {color};"></div>
                <div class="bar-label">{label}</div>
            </div>'''


def _severity_chart(severity):
    max_val = max((v for v in severity.values() if v > 0), default=1)

    bars = []
    for key, label in [("critical", "Crit"), ("high", "High"), ("medium", "Med"), ("low", "Low"), ("info", "Info")]:
        value = severity.get(key, 0)
        height = max(20, (value / max_val) * 160) if value else 4
        bars.append(_bar(label, value, height, SEVERITY_COLORS[key]))
    return "".join(bars)


def _owasp_chart(owasp_data):
    if not owasp_data:
        return '<div style="color: #64748b; text-align: center; padding: 40px;">No OWASP findings</div>'

    max_val = max((d["count"] for d in owasp_data), default=1)

    bars = []
    for item in owasp_data:
        height = max(20, (item["count"] / max_val) * 160)
        color = SEVERITY_COLORS.get(item["severity"], "#64748b")
        bars.append(_bar(item["code"], item["count"], height, color))
    return "".join(bars)


_env.globals['severity_chart'] = _severity_chart
_env.globals['owasp_chart'] = _owasp_chart
_env.globals['severity_colors'] = SEVERITY_COLORS


def render_html_report(result: ScanResult) -> str:
    severity = result.summary or severity_counts(result.findings)

    owasp = []
    for code, entry in owasp_summary(result.findings).items():
        if entry["findings"]:
            owasp.append({
                "code": code.split(":")[0],
                "name": entry["name"],
                "count": entry["findings"],
                "severity": entry["severity"],
            })

    template = _env.get_template("report.html")
    return template.render(
        target=result.target,
        scan_id=result.scan_id,
        duration=result.duration_seconds,
        tests=len(result.tests_executed),
        total_findings=len(result.findings),
        severity=severity,
        risk=risk_level(severity),
        owasp=owasp,
        top=top_findings(result.findings),
        findings=sorted(result.findings, key=lambda f: -f.severity.rank),
        recommendations=recommendations(severity),
        errors=result.errors,
        cancelled=result.cancelled,
        timestamp=datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
    )


def generate_html_report(result: ScanResult, output_path: str) -> None:
    output_file = Path(output_path)
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_html_report(result), encoding="utf-8")
