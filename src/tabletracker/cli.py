from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .catalog import CatalogError
from .config import load_config, RuntimeConfig
from .engine import Engine, ParseRequest, ScanRequest
from .io_utils import read_text_safely


app = typer.Typer(add_completion=False, no_args_is_help=True, help="tabletracker: extract table names from SQL queries")
console = Console()
err_console = Console(stderr=True)

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def version_callback(value: bool):
    from . import __version__

    if value:
        console.print(f"tabletracker {__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=_LOG_LEVELS.get((level or "info").lower(), logging.INFO),
        format="%(name)s - %(message)s",
        handlers=[RichHandler(console=err_console, show_path=False, show_time=False)],
        force=True,
    )


def _split_csv(text: Optional[str]) -> Optional[List[str]]:
    if not text:
        return None
    items = [part.strip() for part in text.split(",")]
    return [i for i in items if i] or None


def _fail(message: str, exc: Exception) -> None:
    err_console.print(f"[red]{escape(message)}[/red]")
    err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
    raise typer.Exit(code=1)


@app.callback()
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, exists=True, dir_okay=False, help="Path to tabletracker.yml"),
    log_level: Optional[str] = typer.Option(None, help="log level: debug|info|warn|error"),
    format: Optional[str] = typer.Option(None, help="output format: text|json"),
    version: bool = typer.Option(False, "--version", callback=version_callback, is_eager=True, help="Show version and exit"),
):
    ctx.ensure_object(dict)
    try:
        cfg = load_config(config)
    except (ValueError, yaml.YAMLError) as e:
        raise typer.BadParameter(str(e), param_hint="--config")
    # CLI flags take precedence over the config file
    if log_level:
        cfg.log_level = log_level
    if format:
        cfg.output_format = format
    _setup_logging(cfg.log_level)
    ctx.obj["cfg"] = cfg


@app.command()
def parse(
    ctx: typer.Context,
    query: str = typer.Argument(..., help="SQL query to parse (or file path if using --file)"),
    file: bool = typer.Option(False, "--file", "-f", help="Read SQL from file instead of argument"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show verbose output"),
    known_tables: Optional[Path] = typer.Option(
        None, "--known-tables", "-t", exists=True, dir_okay=False,
        help="JSON/YAML file with known table definitions",
    ),
    tables: Optional[str] = typer.Option(None, help="Comma-separated list of known table names"),
    filter_ctes: bool = typer.Option(False, "--filter-ctes", help="Filter out CTEs using known tables"),
    keywords: Optional[str] = typer.Option(None, help="Comma-separated keywords to look for (overrides defaults)"),
    custom_keywords: Optional[str] = typer.Option(None, help="Additional keywords to include (comma-separated)"),
    dialect: Optional[str] = typer.Option(None, help="Keyword preset: postgres|mysql|tsql|oracle|bigquery|snowflake|sqlite"),
    encoding: Optional[str] = typer.Option(None, help="File encoding for --file (auto detects BOM/UTF-16)"),
):
    cfg: RuntimeConfig = ctx.obj["cfg"]
    engine = Engine(cfg)

    if file:
        try:
            sql = read_text_safely(query, encoding=encoding or cfg.encoding)
        except (OSError, ValueError) as e:
            _fail(f"Failed to read file: {query}", e)
    else:
        sql = query

    req = ParseRequest(
        sql=sql,
        known_tables=known_tables,
        table_names=_split_csv(tables),
        filter_ctes=filter_ctes,
        keywords=_split_csv(keywords),
        custom_keywords=_split_csv(custom_keywords) or [],
        dialect=dialect,
    )
    try:
        result = engine.run_parse(req)
    except CatalogError as e:
        _fail(f"Failed to read known tables file: {known_tables or cfg.known_tables}", e)
    except KeyError as e:
        raise typer.BadParameter(e.args[0], param_hint="--dialect")

    if cfg.output_format == "json":
        _emit(result, "json")
        return
    _print_parse_result(result, sql, verbose)


@app.command()
def scan(
    ctx: typer.Context,
    sql_dir: Optional[Path] = typer.Option(None, exists=True, file_okay=False, help="Directory with *.sql files"),
    out_dir: Optional[Path] = typer.Option(None, file_okay=False, help="Write one JSON result per file here"),
    known_tables: Optional[Path] = typer.Option(None, "--known-tables", "-t", exists=True, dir_okay=False),
    filter_ctes: bool = typer.Option(False, "--filter-ctes"),
    include: Optional[str] = typer.Option(None, help="Glob include pattern"),
    exclude: Optional[str] = typer.Option(None, help="Glob exclude pattern"),
    encoding: Optional[str] = typer.Option(None),
    fail_on_warn: bool = typer.Option(False),
):
    cfg: RuntimeConfig = ctx.obj["cfg"]
    engine = Engine(cfg)
    req = ScanRequest(
        sql_dir=sql_dir or Path(cfg.sql_dir),
        out_dir=out_dir or (Path(cfg.out_dir) if cfg.out_dir else None),
        known_tables=known_tables,
        filter_ctes=filter_ctes,
        include=[include] if include else None,
        exclude=[exclude] if exclude else None,
        encoding=encoding or cfg.encoding,
        fail_on_warn=fail_on_warn,
    )
    try:
        result = engine.run_scan(req)
    except CatalogError as e:
        _fail(f"Failed to read known tables file: {known_tables or cfg.known_tables}", e)
    except KeyError as e:
        raise typer.BadParameter(e.args[0], param_hint="dialect")
    _emit(result, cfg.output_format)
    raise typer.Exit(code=result.get("exit_code", 0))


@app.command()
def keywords(ctx: typer.Context):
    """Show default, per-dialect and all available keywords."""
    cfg: RuntimeConfig = ctx.obj["cfg"]
    try:
        payload = Engine(cfg).run_keywords()
    except KeyError as e:
        raise typer.BadParameter(e.args[0], param_hint="keyword_presets")
    if cfg.output_format == "json":
        _emit(payload, "json")
        return

    console.print("[bold blue]SQL keywords[/bold blue]\n")
    console.print("[yellow]Default keywords:[/yellow]")
    for kw in payload["default"]:
        console.print(f"  - {escape(kw)}")
    default = set(payload["default"])
    for name, kws in payload["dialects"].items():
        extra = [k for k in kws if k not in default]
        console.print(f"\n[cyan]{escape(name)}[/cyan] adds: {escape(', '.join(extra)) or '-'}")
    console.print(f"\n[dim]Total available: {len(payload['all'])} keywords[/dim]")
    console.print("[dim]Use --keywords to replace the defaults, --custom-keywords to add to them[/dim]")


@app.command()
def demo(ctx: typer.Context):
    """Run the example queries against a small example catalog."""
    cfg: RuntimeConfig = ctx.obj["cfg"]
    _emit(Engine(cfg).run_demo(), cfg.output_format)


def _print_parse_result(result: Dict[str, Any], sql: str, verbose: bool) -> None:
    all_tables = result["allTables"]
    if not all_tables:
        console.print("[yellow]No tables found in the query[/yellow]")
    else:
        console.print(f"[green]Tables found ({len(all_tables)}):[/green]")
        for t in all_tables:
            console.print(f"[yellow]- {escape(t)}[/yellow]")

        if result.get("filterCTEs"):
            if result["realTables"]:
                console.print(f"\n[green]Real tables ({len(result['realTables'])}):[/green]")
                for t in result["realTables"]:
                    console.print(f"[cyan]- {escape(t)}[/cyan]")
            if result["filteredCTEs"]:
                console.print(f"\n[magenta]Filtered CTEs ({len(result['filteredCTEs'])}):[/magenta]")
                for t in result["filteredCTEs"]:
                    console.print(f"[dim]- {escape(t)}[/dim]")

    if verbose:
        console.print("\n[dim]Query analyzed:[/dim]")
        console.print(f"[dim]{escape(' '.join(sql.split()))}[/dim]")
        if result.get("knownTables"):
            console.print(f"[dim]Known tables loaded: {result['knownTables']}[/dim]")
        console.print(f"[dim]Keywords used: {escape(', '.join(result['keywords']))}[/dim]")


def _emit(payload: dict, fmt: str) -> None:
    if fmt == "json":
        sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + "\n")
        return

    if "rows" in payload and isinstance(payload["rows"], list):
        table = Table(show_header=True)
        for k in payload.get("columns", []):
            table.add_column(k)
        for r in payload["rows"]:
            table.add_row(*[escape(str(r.get(c, ""))) for c in payload.get("columns", [])])
        console.print(table)
        if payload.get("warnings"):
            console.print(f"[yellow]Warnings: {payload['warnings']}[/yellow]")
    else:
        console.print(payload)


def entrypoint() -> None:
    app()


if __name__ == "__main__":
    entrypoint()
