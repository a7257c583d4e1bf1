"""CLI entry point for sheet-repair."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table as RichTable

from sheet_repair import FIXED_SUFFIX, __version__
from sheet_repair.analyzer import analyze, select_sheets
from sheet_repair.codec import decode, encode
from sheet_repair.config import AnalyzerConfig
from sheet_repair.errors import DecodeError, EncodeError
from sheet_repair.grid import Workbook, sheet_statistics
from sheet_repair.io import fixed_output_name, read_findings, write_bytes, write_findings, write_json
from sheet_repair.models import Finding, RunManifest, Severity
from sheet_repair.patch import apply_fixes
from sheet_repair.report import severity_counts, summarize_findings, write_report
from sheet_repair.utils import plural, sha256_bytes, utcnow_iso

app = typer.Typer(
    name="srepair",
    help="sheet-repair — Find spreadsheet errors and propose formula fixes.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

_SEVERITY_STYLES = {
    Severity.CRITICAL.value: "red",
    Severity.WARNING.value: "yellow",
    Severity.INFO.value: "cyan",
}


def _noop(*_args: object, **_kwargs: object) -> None:
    return None


def _printer(quiet: bool) -> Callable[..., None]:
    return _noop if quiet else console.print


def _err(msg: str) -> None:
    console.print(f"[red]x[/red] {msg}")


# ── Helpers ──────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"sheet-repair v{__version__}")
        raise typer.Exit()


def _setup_logging(verbose: bool, quiet: bool) -> None:
    level = logging.DEBUG if verbose else logging.ERROR if quiet else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False, show_time=False)],
        force=True,
    )


def _read_input(input_file: Path) -> tuple[bytes, Workbook]:
    try:
        data = input_file.read_bytes()
    except OSError as exc:
        raise DecodeError(f"Cannot read {input_file}: {exc}") from exc
    return data, decode(data)


def _load_config(config_file: Path | None, header_rows: int | None) -> AnalyzerConfig:
    config = AnalyzerConfig.from_file(config_file) if config_file else AnalyzerConfig()
    if header_rows is not None:
        data = config.to_dict()
        data["header_rows"] = header_rows
        config = AnalyzerConfig.from_dict(data)
    return config


def _write_manifest(
    out_path: Path,
    command: str,
    input_file: Path,
    created_at: str,
    *,
    sha256: str = "",
    output_path: Path | None = None,
    sheets: list[str] | None = None,
    findings: int = 0,
    error_message: str = "",
) -> Path:
    manifest = RunManifest(
        command=command,
        version=__version__,
        input_path=str(input_file.resolve()),
        output_path=str(output_path.resolve()) if output_path else "",
        created_at_utc=created_at,
        sha256=sha256,
        sheets=sheets or [],
        findings=findings,
        status="failed" if error_message else "success",
        error_message=error_message,
    )
    return write_json(out_path, manifest.to_dict())


def _print_summary(findings: list[Finding]) -> None:
    counts = severity_counts(findings)
    tbl = RichTable(title="Findings", show_lines=False)
    tbl.add_column("Sheet", style="bold")
    tbl.add_column("Kind")
    tbl.add_column("Severity")
    tbl.add_column("Count", justify="right")
    for row in summarize_findings(findings).itertuples(index=False):
        style = _SEVERITY_STYLES.get(row.severity, "")
        tbl.add_row(row.sheet, row.kind, f"[{style}]{row.severity}[/{style}]", str(row.count))
    console.print(tbl)
    console.print(
        f"  {plural(len(findings), 'finding')}: "
        f"[red]{counts['critical']} critical[/red], "
        f"[yellow]{counts['warning']} warning[/yellow], "
        f"[cyan]{counts['info']} info[/cyan]"
    )


# ── Callbacks ────────────────────────────────────────────────────


@app.callback()
def main(
    version: bool | None = typer.Option(
        None, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """sheet-repair CLI."""


# ── sheets command ───────────────────────────────────────────────


@app.command()
def sheets(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX workbook.",
        exists=True, readable=True,
    ),
) -> None:
    """List the workbook's sheets with row, column and formula counts."""
    _setup_logging(False, False)
    try:
        _, workbook = _read_input(input_file)
    except DecodeError as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    tbl = RichTable(title=input_file.name)
    tbl.add_column("Sheet", style="bold")
    tbl.add_column("Rows", justify="right")
    tbl.add_column("Columns", justify="right")
    tbl.add_column("Formulas", justify="right")
    for stat in sheet_statistics(workbook):
        tbl.add_row(stat["sheet"], str(stat["rows"]), str(stat["columns"]), str(stat["formulas"]))
    console.print(tbl)


# ── analyze command ──────────────────────────────────────────────


@app.command("analyze")
def analyze_cmd(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX workbook.",
        exists=True, readable=True,
    ),
    sheet: list[str] | None = typer.Option(
        None, "--sheet", "-s",
        help="Sheet to analyse (repeatable). Default: every sheet.",
    ),
    out_dir: Path = typer.Option(
        Path("output"), "--out-dir", "-o",
        help="Output directory for findings + report + manifest.",
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c",
        help="JSON file with detector threshold overrides.",
    ),
    header_rows: int | None = typer.Option(
        None, "--header-rows",
        min=0,
        help="Leading rows treated as headers by the column checks.",
    ),
    quiet: bool = typer.Option(
        False, "--quiet", "-q",
        help="Suppress informational output; still writes all artifacts.",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log detector progress."),
) -> None:
    """Scan a workbook and write findings.json + Findings_Report.xlsx."""
    _setup_logging(verbose, quiet)
    echo = _printer(quiet)
    created_at = utcnow_iso()
    out_dir.mkdir(parents=True, exist_ok=True)
    manifest_path = out_dir / "run_manifest.json"

    try:
        config = _load_config(config_file, header_rows)
        data, workbook = _read_input(input_file)
    except (DecodeError, ValueError) as exc:
        _write_manifest(manifest_path, "analyze", input_file, created_at, error_message=str(exc))
        _err(str(exc))
        console.print(f"  Manifest -> {manifest_path}")
        raise typer.Exit(code=2)

    if not quiet:
        console.print(Panel(
            f"[bold]sheet-repair[/bold] v{__version__}\n"
            f"Input:  {input_file}\nOutput: {out_dir}",
            title="Analyze", border_style="blue",
        ))

    try:
        selected = [s.name for s in select_sheets(workbook, sheet)]
        if sheet and not selected:
            message = f"None of the selected sheets exist: {', '.join(sheet)}"
            _write_manifest(
                manifest_path, "analyze", input_file, created_at,
                sha256=sha256_bytes(data), error_message=message,
            )
            _err(message)
            console.print(f"  Available: {', '.join(workbook.sheet_names)}")
            raise typer.Exit(code=2)

        echo(f"[blue]>[/blue] Analysing {plural(len(selected), 'sheet')} …")
        findings = analyze(workbook, sheet, config=config)

        findings_path = write_findings(out_dir / "findings.json", findings)
        echo(f"  Findings -> {findings_path}")
        report_path = write_report(
            out_dir, findings, source_name=input_file.name, sheets=selected
        )
        echo(f"  Report   -> {report_path}")
        _write_manifest(
            manifest_path, "analyze", input_file, created_at,
            sha256=sha256_bytes(data), output_path=findings_path,
            sheets=selected, findings=len(findings),
        )
        echo(f"  Manifest -> {manifest_path}")

        if not quiet:
            if findings:
                _print_summary(findings)
            else:
                console.print("[green]No issues found.[/green]")
    except typer.Exit:
        raise
    except Exception as exc:
        message = f"Unexpected internal error: {exc}"
        _write_manifest(manifest_path, "analyze", input_file, created_at, error_message=message)
        _err(message)
        raise typer.Exit(code=1)


# ── fix command ──────────────────────────────────────────────────


@app.command()
def fix(
    input_file: Path = typer.Option(
        ..., "--input", "-i",
        help="Path to the XLSX workbook.",
        exists=True, readable=True,
    ),
    findings_file: Path | None = typer.Option(
        None, "--findings", "-f",
        help="findings.json from a previous analyze run. Default: re-analyse.",
    ),
    accept: list[int] | None = typer.Option(
        None, "--accept", "-a",
        help="Index of a finding to apply (repeatable). Default: every proposal.",
    ),
    apply_all: bool = typer.Option(False, "--all", help="Apply every proposal, ignoring --accept."),
    sheet: list[str] | None = typer.Option(
        None, "--sheet", "-s",
        help="Sheet to analyse when re-analysing (repeatable).",
    ),
    output: Path | None = typer.Option(
        None, "--output", "-o",
        help=f"Output workbook. Default: <input>{FIXED_SUFFIX}.xlsx next to the input.",
    ),
    config_file: Path | None = typer.Option(
        None, "--config", "-c",
        help="JSON file with detector threshold overrides (re-analysis only).",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress informational output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every skipped fix."),
) -> None:
    """Apply proposed fixes and write the corrected workbook."""
    _setup_logging(verbose, quiet)
    echo = _printer(quiet)
    out_path = output or fixed_output_name(input_file)

    try:
        _, workbook = _read_input(input_file)
        if findings_file is not None:
            findings = read_findings(findings_file)
        else:
            findings = analyze(workbook, sheet, config=_load_config(config_file, None))
    except (DecodeError, ValueError) as exc:
        _err(str(exc))
        raise typer.Exit(code=2)

    if apply_all or not accept:
        accepted = {i for i, f in enumerate(findings) if f.proposed}
    else:
        accepted = set(accept)
    fixable = sorted(i for i in accepted if 0 <= i < len(findings) and findings[i].proposed)
    if not fixable:
        echo("[yellow]![/yellow] No proposed fixes to apply; nothing written.")
        return

    echo(f"[blue]>[/blue] Applying {plural(len(fixable), 'fix', 'fixes')} …")
    try:
        apply_fixes(workbook, findings, accepted)
        written = write_bytes(out_path, encode(workbook))
    except EncodeError as exc:
        _err(str(exc))
        raise typer.Exit(code=1)
    except OSError as exc:
        _err(f"Cannot write {out_path}: {exc}")
        raise typer.Exit(code=1)

    if not quiet:
        for i in fixable:
            f = findings[i]
            console.print(f"  [green]+[/green] {f.sheet}!{f.address}: {f.proposed}")
        console.print(Panel(
            f"[green]Done[/green] — {plural(len(fixable), 'fix', 'fixes')} -> {written}",
            title="Fix Complete", border_style="green",
        ))
