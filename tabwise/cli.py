"""
tabwise.cli
-----------

User-facing Click command-line interface.

Commands
--------
list         : Show windows and tabs of the running Chrome
organize     : Ask the model to group tabs in place
distribute   : Group tabs and spread the groups over windows
consolidate  : Move every tab into one window
ungroup      : Remove every tab from its group
ask          : Ask the model about the open tabs, optionally applying its action
check-key    : Validate a provider API key
chrome-status: Report whether Chrome exposes remote debugging
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from importlib import metadata
from typing import Any, Awaitable, Callable, Optional, TypeVar

import click

from tabwise.chrome import ChromeHost
from tabwise.chrome_utils import scan_chrome_processes
from tabwise.config import Settings, load_settings
from tabwise.constants import CHROME_PROCESS_NAMES, ProviderKind
from tabwise.errors import TabwiseError
from tabwise.host import read_snapshot
from tabwise.models import (
    ChatActionType,
    ChatResponse,
    DistributionReport,
    OrganizeResult,
    WindowSnapshot,
)
from tabwise.organizer import TabOrganizer
from tabwise.providers import create_adapter

_LOG = logging.getLogger(__name__)

T = TypeVar("T")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# --------------------------------------------------------------------------- #
# Sync bridges                                                                #
# --------------------------------------------------------------------------- #


def _run(coro: Awaitable[T]) -> T:
    """Run *coro* to completion, turning library errors into Click errors."""
    try:
        return asyncio.run(coro)
    except TabwiseError as exc:
        raise click.ClickException(str(exc)) from exc
    except RuntimeError as exc:
        # Chrome connection problems surface as RuntimeError
        raise click.ClickException(str(exc)) from exc


async def _with_organizer(
    settings: Settings,
    action: Callable[[TabOrganizer], Awaitable[T]],
    *,
    need_adapter: bool = True,
) -> T:
    # Configuration problems are reported before touching Chrome
    adapter = create_adapter(settings.provider_config()) if need_adapter else None
    async with ChromeHost() as host:
        return await action(TabOrganizer(host, adapter, settings))


async def _read_snapshot() -> WindowSnapshot:
    async with ChromeHost() as host:
        return await read_snapshot(host)


def _settings_or_fail(**overrides: Any) -> Settings:
    try:
        return load_settings(**overrides)
    except TabwiseError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_result(result: OrganizeResult) -> None:
    for group in result.groups:
        click.echo(f"{group.name:30}  {group.size:3} tab(s)")
    report = result.report
    windows = len(result.snapshot.normal_windows())
    click.echo(
        f"✓ {len(result.snapshot.tabs)} tab(s) across {windows} window(s)"
        f" (moved {report.moved}, groups {report.groups_created},"
        f" new windows {report.windows_created}, closed {report.windows_closed})"
    )
    for reason in report.skipped:
        click.echo(f"⚠️  skipped: {reason}", err=True)


_PROVIDER_CHOICE = click.Choice([p.value for p in ProviderKind], case_sensitive=False)


def provider_options(fn: Callable) -> Callable:
    """Shared provider selection options."""
    fn = click.option(
        "--model", type=str, default=None, help="Model id (provider default if omitted)."
    )(fn)
    fn = click.option(
        "-p", "--provider", type=_PROVIDER_CHOICE, default=None, help="AI provider."
    )(fn)
    return fn


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose logging.")
@click.version_option(metadata.version("tabwise"))
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:  # noqa: D401  (Click demands plain name)
    """tabwise – let an AI model organise your Chrome tabs."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)


# --------------------------------------------------------------------------- #
# list command                                                                #
# --------------------------------------------------------------------------- #


@cli.command("list")
@click.option(
    "-o",
    "--output",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    show_default=True,
    help="Output format.",
)
def cmd_list(output: str) -> None:
    """List windows and tabs."""
    snapshot = _run(_read_snapshot())

    if output == "json":
        payload = {
            "windows": [
                {"id": w.id, "kind": w.kind.value, "tabCount": w.tab_count}
                for w in snapshot.windows
            ],
            "tabs": [
                {
                    "id": t.id,
                    "title": t.title,
                    "url": t.url,
                    "windowId": t.window_id,
                    "groupId": t.group_id,
                }
                for t in snapshot.tabs
            ],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    if not snapshot.tabs:
        click.echo("No open tabs.")
        return

    header = f"{'Window':>10}  {'Group':>6}  {'Title':40}  URL"
    click.echo(header)
    click.echo("-" * len(header))
    for tab in sorted(snapshot.tabs, key=lambda t: (t.window_id or 0)):
        group = str(tab.group_id) if tab.is_grouped else "-"
        click.echo(
            f"{tab.window_id!s:>10}  {group:>6}  {tab.title[:40]:40}  {tab.url}"
        )


# --------------------------------------------------------------------------- #
# organize / distribute                                                       #
# --------------------------------------------------------------------------- #


@cli.command("organize")
@click.option("-m", "--prompt", type=str, default=None, help="Extra grouping instruction.")
@provider_options
def cmd_organize(prompt: Optional[str], provider: Optional[str], model: Optional[str]) -> None:
    """Group tabs in place using the configured AI provider."""
    settings = _settings_or_fail(provider=provider, model=model)
    result = _run(_with_organizer(settings, lambda org: org.organize(prompt)))
    _echo_result(result)


@cli.command("distribute")
@click.option("-m", "--prompt", type=str, default=None, help="Extra grouping instruction.")
@click.option(
    "--max-tabs",
    type=int,
    default=None,
    help="Maximum tabs per window (clamped to 5-30).",
)
@provider_options
def cmd_distribute(
    prompt: Optional[str],
    max_tabs: Optional[int],
    provider: Optional[str],
    model: Optional[str],
) -> None:
    """Group tabs and distribute the groups across windows."""
    settings = _settings_or_fail(
        provider=provider, model=model, max_tabs_per_window=max_tabs
    )
    result = _run(
        _with_organizer(
            settings,
            lambda org: org.distribute(prompt, settings.max_tabs_per_window),
        )
    )
    _echo_result(result)


# --------------------------------------------------------------------------- #
# consolidate / ungroup                                                       #
# --------------------------------------------------------------------------- #


@cli.command("consolidate")
def cmd_consolidate() -> None:
    """Move every tab into a single window."""
    settings = _settings_or_fail()
    result = _run(
        _with_organizer(settings, lambda org: org.consolidate(), need_adapter=False)
    )
    _echo_result(result)


@cli.command("ungroup")
def cmd_ungroup() -> None:
    """Remove all tabs from their groups."""
    settings = _settings_or_fail()
    _run(_with_organizer(settings, lambda org: org.ungroup(), need_adapter=False))
    click.echo("✓ All tabs ungrouped")


# --------------------------------------------------------------------------- #
# ask                                                                         #
# --------------------------------------------------------------------------- #


async def _ask(
    organizer: TabOrganizer, message: str, include_page: bool, apply: bool
) -> tuple[ChatResponse, Optional[DistributionReport]]:
    response = await organizer.chat(message, include_page=include_page)
    if not apply or response.action.type is ChatActionType.NONE:
        return response, None
    return response, await organizer.execute_action(response.action)


@cli.command("ask")
@click.argument("message", nargs=-1, required=True)
@click.option(
    "--page", "include_page", is_flag=True, help="Send the active page's text along."
)
@click.option("--apply", is_flag=True, help="Carry out the action the model suggests.")
@provider_options
def cmd_ask(
    message: tuple[str, ...],
    include_page: bool,
    apply: bool,
    provider: Optional[str],
    model: Optional[str],
) -> None:
    """Ask the model a question about the open tabs."""
    settings = _settings_or_fail(provider=provider, model=model)
    response, report = _run(
        _with_organizer(
            settings, lambda org: _ask(org, " ".join(message), include_page, apply)
        )
    )
    click.echo(response.message)
    action = response.action
    if action.type is ChatActionType.NONE:
        return
    if report is None:
        click.echo(f"Suggested action: {action.type.value} {json.dumps(action.payload)}")
        return
    click.echo(f"✓ Applied {action.type.value} action")
    for reason in report.skipped:
        click.echo(f"⚠️  skipped: {reason}", err=True)


# --------------------------------------------------------------------------- #
# check-key                                                                   #
# --------------------------------------------------------------------------- #


@cli.command("check-key")
@click.option("-p", "--provider", type=_PROVIDER_CHOICE, default=None, help="AI provider.")
@click.option("-k", "--key", "api_key", type=str, default=None, help="API key to test.")
def cmd_check_key(provider: Optional[str], api_key: Optional[str]) -> None:
    """Check whether an API key is accepted by the provider.

    Exit status:
        0 → key accepted
        1 → key rejected or provider unreachable
    """
    settings = _settings_or_fail(provider=provider, api_key=api_key)
    try:
        config = settings.provider_config()
    except TabwiseError as exc:
        raise click.ClickException(str(exc)) from exc

    adapter = create_adapter(config)
    ok = _run(adapter.validate_key())
    if ok:
        click.echo(f"✓ {config.provider.value} key is valid")
        return
    click.echo(f"✗ {config.provider.value} rejected the key", err=True)
    sys.exit(1)


# --------------------------------------------------------------------------- #
# chrome-status                                                               #
# --------------------------------------------------------------------------- #


@cli.command("chrome-status")
def cmd_chrome_status() -> None:
    """Display whether Chrome is running and if remote debugging is enabled.

    Exit status:
        0 → Chrome is running with --remote-debugging-port
        1 → Chrome not running or missing the flag
    """
    status = scan_chrome_processes(CHROME_PROCESS_NAMES)

    click.echo(f"Chrome running       : {'Yes' if status.running else 'No'}")
    click.echo(f"Remote debugging flag: {'Yes' if status.remote_debug else 'No'}")
    if status.remote_debug:
        click.echo(f"Remote debugging port: {status.debug_port or '(unspecified)'}")
    click.echo(f"PIDs                 : {', '.join(map(str, status.pids)) or '-'}")

    if not status.running or not status.remote_debug:
        sys.exit(1)


if __name__ == "__main__":
    cli()
