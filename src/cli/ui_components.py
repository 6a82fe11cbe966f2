"""CLI UI components (Rich)."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from core.domain.models import AggregatedSearchResult, FullRecord, MFADevice, UnifiedAccount


def print_banner(console: Console) -> None:
    title = Text("account-hub", style="bold cyan")
    subtitle = Text("JumpCloud • Okta • Active Directory", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def _flag(value: bool, *, good: bool = True) -> str:
    style = "green" if value is good else "red"
    return f"[{style}]{'yes' if value else 'no'}[/{style}]"


def _when(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def build_search_table(results: Sequence[AggregatedSearchResult]) -> Table:
    """One row per person; `Key` is what `account` accepts."""

    table = Table(title="Accounts")
    table.add_column("Name", style="bright_green", no_wrap=True)
    table.add_column("Email", style="white")
    table.add_column("Username", style="white")
    table.add_column("Sources", style="cyan")
    table.add_column("Key", style="dim")
    for result in results:
        table.add_row(
            result.display_name or "-",
            result.email or "-",
            result.username or "-",
            ", ".join(source.label() for source in result.sources),
            result.key,
        )
    return table


def build_accounts_table(accounts: Sequence[FullRecord]) -> Table:
    table = Table(title="Linked accounts")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Username", style="white")
    table.add_column("Email", style="white")
    table.add_column("Enabled")
    table.add_column("Locked")
    table.add_column("MFA")
    table.add_column("Password set", style="dim")
    table.add_column("Last login", style="dim")
    table.add_column("Id", style="magenta")
    for account in accounts:
        table.add_row(
            account.source.label(),
            account.username or "-",
            account.email or "-",
            _flag(account.enabled),
            _flag(account.locked, good=False),
            _flag(account.mfa_enabled),
            _when(account.password_last_set),
            _when(account.last_login),
            account.source_id,
        )
    return table


def build_mfa_table(devices: Sequence[MFADevice]) -> Table:
    table = Table(title="MFA devices")
    table.add_column("Source", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")
    table.add_column("Type", style="dim")
    table.add_column("Status")
    table.add_column("Enrolled", style="dim")
    for device in devices:
        table.add_row(
            device.source.label(),
            device.name,
            device.type,
            device.status.value,
            _when(device.enrolled_at),
        )
    return table


def print_account(console: Console, account: UnifiedAccount) -> None:
    primary = next((a for a in account.accounts if a.source == account.primary_source), None)
    name = primary.display_name if primary else "-"
    console.print(
        Panel(
            Text.assemble((name, "bold"), "\n", (f"Primary source: {account.primary_source.label()}", "dim")),
            border_style="cyan",
        )
    )
    console.print(build_accounts_table(account.accounts))
    if account.mfa_devices:
        console.print(build_mfa_table(account.mfa_devices))
    else:
        console.print("[dim]No MFA devices enrolled.[/dim]")
