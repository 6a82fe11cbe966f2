"""account-hub command line.

Thin layer over `AccountService`: parse arguments, run the coroutine,
render with Rich (or JSON). No aggregation logic lives here.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console

from adapters.json_exporter import dump_models, export_json
from cli import doctor
from cli.ui_components import build_search_table, print_account, print_banner
from core.config import AppSettings
from core.domain.models import AccountPatch, Action, MfaResetRequest, Source
from core.errors import AccountResolutionError, InvalidIdentifierError
from core.logging_config import configure_logging
from core.services.account_service import AccountService

T = TypeVar("T")

app = typer.Typer(no_args_is_help=True, help="Unified accounts across JumpCloud, Okta and Active Directory.")
app.add_typer(doctor.app, name="doctor")

_console = Console()


def build_service() -> AccountService:
    return AccountService.from_settings(AppSettings())


def _run(call: Callable[[AccountService], Awaitable[T]]) -> T:
    async def runner() -> T:
        service = build_service()
        try:
            return await call(service)
        finally:
            await service.aclose()

    return asyncio.run(runner())


def _parse_assignments(assignments: List[str]) -> AccountPatch:
    fields: dict[str, Any] = {}
    for item in assignments:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected field=value, got {item!r}", param_hint="--set")
        fields[key.strip()] = value.strip()
    try:
        return AccountPatch.model_validate(fields)
    except ValidationError as exc:
        raise typer.BadParameter(str(exc), param_hint="--set") from exc


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging."),
) -> None:
    settings = AppSettings()
    configure_logging("DEBUG" if verbose else settings.log_level, json_output=settings.log_json)


@app.command()
def search(
    query: str = typer.Argument(..., help="Email, username or name fragment."),
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
) -> None:
    """Search every configured directory and group hits per person."""

    results = _run(lambda service: service.search(query))
    if json_output:
        typer.echo(dump_models(results), nl=False)
        return

    print_banner(_console)
    if not results:
        _console.print(f"[yellow]No accounts match[/yellow] {query!r}")
        return
    _console.print(build_search_table(results))


@app.command()
def account(
    identifier: str = typer.Argument(..., help="Search key, email, username, native id or DN."),
    source: Optional[Source] = typer.Option(None, "--source", "-s", help="Look the id up in this directory only."),
    json_output: bool = typer.Option(False, "--json", help="Print JSON instead of tables."),
    export: Optional[Path] = typer.Option(None, "--export", help="Also write the unified account to this JSON file."),
) -> None:
    """Show the unified account (every linked record plus MFA devices)."""

    try:
        result = _run(lambda service: service.get_account(identifier, source))
    except InvalidIdentifierError as exc:
        raise typer.BadParameter(str(exc), param_hint="IDENTIFIER") from exc
    except AccountResolutionError:
        _console.print("[red]Failed to resolve the account.[/red] See the log for details.")
        raise typer.Exit(code=2)

    if result is None:
        _console.print(f"[yellow]Account not found:[/yellow] {identifier}")
        raise typer.Exit(code=1)

    if export is not None:
        export_json(payload=result, output_path=export)
    if json_output:
        typer.echo(dump_models(result), nl=False)
        return

    print_banner(_console)
    print_account(_console, result)
    if export is not None:
        _console.print(f"[green]Exported to[/green] {export}")


@app.command()
def action(
    name: Action = typer.Argument(..., metavar="ACTION", help="update, expirePassword, resetMFA or suspend."),
    source: Source = typer.Argument(..., help="Directory that owns the record."),
    source_id: str = typer.Argument(..., help="Native id (or DN) in that directory."),
    assignments: Optional[List[str]] = typer.Option(None, "--set", help="field=value for update (repeatable)."),
    factor_id: Optional[str] = typer.Option(None, "--factor-id", help="Reset a single MFA factor."),
) -> None:
    """Run an administrative action against one directory record."""

    payload: AccountPatch | MfaResetRequest | None = None
    if name is Action.UPDATE:
        if not assignments:
            raise typer.BadParameter("update needs at least one --set field=value", param_hint="--set")
        payload = _parse_assignments(assignments)
    elif name is Action.RESET_MFA:
        payload = MfaResetRequest(factor_id=factor_id)

    ok = _run(lambda service: service.perform_action(name, source, source_id, payload))
    if not ok:
        _console.print(f"[red]{name.value} failed[/red] on {source.label()} record {source_id}")
        raise typer.Exit(code=1)
    _console.print(f"[green]{name.value} succeeded[/green] on {source.label()} record {source_id}")


def run() -> None:
    app()
