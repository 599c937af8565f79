import asyncio
import json
from pathlib import Path
from typing import List, Optional

import typer
import yaml

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from apiprobe.api import (
    analyze_token,
    check_cors,
    check_rate_limit,
    fuzz_endpoint,
    parse_endpoint,
    start_scan,
)
from apiprobe.config import (
    ApiKeyLocation,
    AuthConfig,
    AuthType,
    Finding,
    Payload,
    ScanConfig,
    ScanOptions,
    ScanResult,
    SeverityLevel,
    TargetConfig,
)
from apiprobe.payloads import PAYLOAD_CORPUS, corpus_summary, load_payloads_file, parse_category
from apiprobe.probes import DEFAULT_PROBES, PROBES
from apiprobe.report import generate_html_report, risk_level, save_json_report
from apiprobe.scanner import ScanEvent
from apiprobe.utils import setup_logging

console = Console()
app = typer.Typer(rich_markup_mode="rich", help="Black-box API vulnerability scanner")

SEVERITY_STYLES = {
    SeverityLevel.CRITICAL: "bold red",
    SeverityLevel.HIGH: "red",
    SeverityLevel.MEDIUM: "yellow",
    SeverityLevel.LOW: "green",
    SeverityLevel.INFO: "blue",
}

CONFIG_ERRORS = (ValueError, yaml.YAMLError)


def print_banner():
    console.print("\n[bold cyan]apiprobe[/bold cyan] - Black-box API vulnerability scanner\n")


def _fail_config(error: Exception) -> None:
    console.print(f"[red]Configuration error: {error}[/red]")
    raise typer.Exit(2)


def _build_auth(
    bearer: Optional[str],
    api_key: Optional[str],
    api_key_in: str,
    api_key_name: str,
) -> Optional[AuthConfig]:
    if bearer:
        return AuthConfig(type=AuthType.BEARER, token=bearer)
    if api_key:
        return AuthConfig(
            type=AuthType.API_KEY,
            api_key=api_key,
            api_key_location=ApiKeyLocation(api_key_in.lower()),
            api_key_name=api_key_name,
        )
    return None


def _findings_table(findings: List[Finding], title: str = "Findings") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Severity")
    table.add_column("Type")
    table.add_column("Endpoint")
    table.add_column("CWE")
    table.add_column("Description", overflow="fold")

    for f in sorted(findings, key=lambda f: -f.severity.rank):
        style = SEVERITY_STYLES.get(f.severity, "")
        table.add_row(
            f"[{style}]{f.severity.value}[/{style}]",
            f.type.value,
            f.endpoint or "-",
            f.cwe_id,
            f.description,
        )
    return table


def _print_report(result: ScanResult) -> None:
    if result.cancelled:
        console.print("[yellow]Scan was cancelled; results are partial[/yellow]")

    if not result.findings:
        console.print("[green]No vulnerabilities found[/green]")
    else:
        console.print(_findings_table(result.findings))

        parts = []
        if result.critical_count:
            parts.append(f"[red]{result.critical_count} critical[/red]")
        if result.high_count:
            parts.append(f"[yellow]{result.high_count} high[/yellow]")
        if result.medium_count:
            parts.append(f"[yellow]{result.medium_count} medium[/yellow]")
        if result.low_count:
            parts.append(f"[green]{result.low_count} low[/green]")
        summary = ", ".join(parts) or "informational only"
        console.print(
            f"Found {len(result.findings)} findings: {summary} "
            f"(risk: {risk_level(result.summary)})"
        )

    for error in result.errors:
        console.print(f"[dim]error: {error}[/dim]")


def _load_custom_payloads(specs: Optional[List[str]]) -> List[Payload]:
    """Parse repeated ``CATEGORY=PATH`` options into custom payloads."""
    loaded: List[Payload] = []
    for spec in specs or []:
        category, sep, path = spec.partition("=")
        if not sep or not path:
            raise ValueError(f"Expected CATEGORY=PATH, got: {spec}")
        loaded.extend(load_payloads_file(path, category))
    return loaded


def _save_json(data, output: str) -> None:
    output_path = Path(output)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)
    console.print(f"[green]Results saved to: {output_path}[/green]")


def _load_scan_config(
    target: str,
    endpoints: Optional[List[str]],
    requires_auth: bool,
    auth: Optional[AuthConfig],
    openapi: Optional[str] = None,
) -> ScanConfig:
    path = Path(target)
    if path.suffix.lower() in (".yaml", ".yml") and path.exists():
        config = ScanConfig.from_yaml(path)
        if auth is not None:
            config = config.model_copy(update={"authentication": auth})
        return config.with_openapi(openapi) if openapi else config

    parsed = [parse_endpoint(e) for e in endpoints or []]
    if requires_auth:
        parsed = [e.model_copy(update={"requires_auth": True}) for e in parsed]
    config = ScanConfig(
        target=TargetConfig(base_url=target),
        endpoints=parsed,
        authentication=auth,
    )
    return config.with_openapi(openapi) if openapi else config


@app.command()
def scan(
    target: str = typer.Argument(..., help="Target base URL or YAML scan file"),
    endpoint: Optional[List[str]] = typer.Option(None, "-e", "--endpoint", help='Endpoint to test, e.g. "GET /users/:id"'),
    requires_auth: bool = typer.Option(False, "--requires-auth", help="Mark -e endpoints as protected"),
    openapi: str = typer.Option(None, "--openapi", help="OpenAPI 3.x or Swagger 2.0 file (JSON or YAML) to import endpoints from"),
    bearer: str = typer.Option(None, "-b", "--bearer", help="Bearer token for authentication"),
    api_key: str = typer.Option(None, "--api-key", help="API key for authentication"),
    api_key_in: str = typer.Option("header", "--api-key-in", help="API key location: header or query"),
    api_key_name: str = typer.Option("X-API-Key", "--api-key-name", help="API key header or parameter name"),
    probe: Optional[List[str]] = typer.Option(None, "-p", "--probe", help="Probe to run (repeatable)"),
    category: Optional[List[str]] = typer.Option(None, "-c", "--category", help="Fuzz payload category (repeatable)"),
    payload_file: Optional[List[str]] = typer.Option(None, "--payload-file", help="Extra payloads as CATEGORY=PATH (repeatable)"),
    parallel: int = typer.Option(None, "--parallel", help="Concurrent requests against the target"),
    timeout: float = typer.Option(None, "--timeout", help="Request timeout in seconds"),
    output: str = typer.Option(None, "-o", "--output", help="Output JSON file for results"),
    html: str = typer.Option(None, "--html", help="Output HTML report file"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Enable verbose logging"),
):
    """Run the selected probes against a target API."""

    async def _scan():
        setup_logging(verbose=verbose)

        if not verbose:
            print_banner()

        try:
            auth = _build_auth(bearer, api_key, api_key_in, api_key_name)
            config = _load_scan_config(target, endpoint, requires_auth, auth, openapi)

            updates = {}
            if category:
                updates["categories"] = list(category)
            if payload_file:
                updates["custom_payloads"] = list(config.options.custom_payloads) + _load_custom_payloads(payload_file)
            if parallel:
                updates["parallel"] = parallel
            if timeout:
                updates["timeout"] = timeout
            options = config.options.model_copy(update=updates) if updates else config.options
            options = ScanOptions.model_validate(options.model_dump())
        except CONFIG_ERRORS as e:
            _fail_config(e)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Scanning...", total=None)

            def on_event(event: ScanEvent) -> None:
                if event.type == "probe_started":
                    where = f" on {event.endpoint}" if event.endpoint else ""
                    progress.update(task, description=f"Running {event.probe}{where}...")

            try:
                result = await start_scan(
                    config.target,
                    config.endpoints,
                    auth=config.authentication,
                    probes=list(probe) if probe else None,
                    options=options,
                    on_event=on_event,
                )
            except CONFIG_ERRORS as e:
                progress.stop()
                _fail_config(e)

        _print_report(result)

        if output:
            save_json_report(result, output)
            console.print(f"[green]Results saved to: {output}[/green]")

        if html:
            generate_html_report(result, html)
            console.print(f"[green]HTML report: {html}[/green]")

        raise typer.Exit(1 if result.findings else 0)

    asyncio.run(_scan())


@app.command()
def token(
    jwt_token: str = typer.Argument(..., metavar="TOKEN", help="JWT to analyse"),
    secret: str = typer.Option(None, "--secret", help="Verify the signature with this secret"),
    output: str = typer.Option(None, "-o", "--output", help="Output JSON file for results"),
):
    """Analyse a JWT offline: none algorithm, weak secret, expiry, sensitive claims."""
    analysis = analyze_token(jwt_token, secret)

    if analysis.decoded:
        console.print(f"Algorithm: [cyan]{analysis.algorithm}[/cyan]")
        console.print(f"Claims: {json.dumps(analysis.claims, default=str)}")
    if analysis.signature_valid is not None:
        state = "[green]valid[/green]" if analysis.signature_valid else "[red]invalid[/red]"
        console.print(f"Signature with supplied secret: {state}")

    if analysis.findings:
        console.print(_findings_table(analysis.findings, "Token findings"))
    else:
        console.print("[green]No token weaknesses found[/green]")

    if output:
        _save_json(analysis.model_dump(mode="json"), output)

    raise typer.Exit(1 if analysis.findings else 0)


@app.command()
def cors(
    url: str = typer.Argument(..., help="URL to send preflight requests to"),
    origin: Optional[List[str]] = typer.Option(None, "--origin", help="Origin to test (repeatable)"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds"),
    output: str = typer.Option(None, "-o", "--output", help="Output JSON file for results"),
):
    """Test CORS preflight handling for hostile origins."""
    try:
        result = asyncio.run(check_cors(url, origins=list(origin) if origin else None, timeout=timeout))
    except CONFIG_ERRORS as e:
        _fail_config(e)

    console.print(f"Tested {len(result.tested_origins)} origins")
    if result.findings:
        console.print(_findings_table(result.findings, "CORS findings"))
    else:
        console.print("[green]No CORS misconfiguration found[/green]")

    if output:
        _save_json(result.model_dump(mode="json"), output)

    raise typer.Exit(1 if result.findings else 0)


@app.command()
def ratelimit(
    url: str = typer.Argument(..., help="URL to send the burst to"),
    method: str = typer.Option("GET", "-X", "--method", help="HTTP method"),
    count: int = typer.Option(20, "-n", "--count", help="Number of requests"),
    delay: float = typer.Option(0.1, "--delay", help="Seconds between requests"),
    bearer: str = typer.Option(None, "-b", "--bearer", help="Bearer token for authentication"),
):
    """Send a sequential burst and report whether the API throttles it."""
    try:
        auth = _build_auth(bearer, None, "header", "X-API-Key")
        result = asyncio.run(check_rate_limit(url, method, count, delay=delay, auth=auth))
    except CONFIG_ERRORS as e:
        _fail_config(e)

    table = Table(title="Rate limit burst")
    table.add_column("Total")
    table.add_column("Successful")
    table.add_column("Blocked")
    table.add_column("Errors")
    table.add_column("Avg ms")
    table.add_row(
        str(result.total_requests),
        str(result.successful_requests),
        str(result.blocked_requests),
        str(result.error_requests),
        f"{result.average_response_time:.0f}",
    )
    console.print(table)

    if result.rate_limit_detected:
        console.print("[green]Rate limiting detected[/green]")
        raise typer.Exit(0)
    console.print("[yellow]No rate limiting detected[/yellow]")
    raise typer.Exit(1 if result.successful_requests else 0)


@app.command()
def fuzz(
    url: str = typer.Argument(..., help="Target base URL"),
    endpoint: str = typer.Option(..., "-e", "--endpoint", help='Endpoint to fuzz, e.g. "POST /search"'),
    category: Optional[List[str]] = typer.Option(None, "-c", "--category", help="Payload category (repeatable)"),
    payload_file: Optional[List[str]] = typer.Option(None, "--payload-file", help="Extra payloads as CATEGORY=PATH (repeatable)"),
    max_payloads: int = typer.Option(50, "--max", help="Maximum payloads per category"),
    bearer: str = typer.Option(None, "-b", "--bearer", help="Bearer token for authentication"),
    timeout: float = typer.Option(10.0, "--timeout", help="Request timeout in seconds"),
    output: str = typer.Option(None, "-o", "--output", help="Output JSON file for results"),
):
    """Fuzz a single endpoint with the payload corpus."""
    try:
        auth = _build_auth(bearer, None, "header", "X-API-Key")
        custom = _load_custom_payloads(payload_file)
        findings = asyncio.run(fuzz_endpoint(
            url,
            endpoint,
            auth=auth,
            categories=list(category) if category else None,
            max_payloads_per_category=max_payloads,
            timeout=timeout,
            custom_payloads=custom,
        ))
    except CONFIG_ERRORS as e:
        _fail_config(e)

    if findings:
        console.print(_findings_table(findings, "Fuzzing findings"))
    else:
        console.print("[green]No vulnerabilities found[/green]")

    if output:
        _save_json([f.model_dump(mode="json") for f in findings], output)

    raise typer.Exit(1 if findings else 0)


@app.command()
def payloads(
    category: str = typer.Option(None, "-c", "--category", help="Show the payloads of one category"),
):
    """List payload categories, or the payloads of one category."""
    if category:
        try:
            selected = parse_category(category)
        except CONFIG_ERRORS as e:
            _fail_config(e)
        for payload in PAYLOAD_CORPUS[selected]:
            console.print(payload.value, markup=False, highlight=False)
        return

    table = Table(title="Payload corpus")
    table.add_column("Category")
    table.add_column("Payloads", justify="right")
    for name, count in corpus_summary().items():
        table.add_row(name, str(count))
    console.print(table)


@app.command()
def probes():
    """List available probes."""
    table = Table(title="Probes")
    table.add_column("Name")
    table.add_column("Scope")
    table.add_column("Default")
    table.add_column("Description")
    for name, probe_cls in PROBES.items():
        table.add_row(name, probe_cls.scope, "yes" if name in DEFAULT_PROBES else "", probe_cls.description)
    console.print(table)


if __name__ == "__main__":
    app()
