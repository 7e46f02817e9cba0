"""CLI entry point for QuestSync.

The CLI exposes the parts of the core that make sense outside a host
process: update checks and application against the install's git working
copy, normalizing a JSON dump of raw quest records, enrolling in a quest,
and previewing the remote script.

Commands:
    check: Show whether the install is behind upstream
    update: Check, confirm and apply an update
    quests: List quests from a JSON dump of raw registry records
    enroll: Enroll in a quest
    script: Print the remote script without running it

Example:
    questsync check
    questsync update --yes
    questsync quests registry-dump.json
"""

from __future__ import annotations

import asyncio
import json
import sys
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import click

from questsync import __version__
from questsync.config import QuestSyncConfig, load_config
from questsync.exceptions import ConfigError, ScriptError
from questsync.logging import setup_logging
from questsync.models import ApplyStatus, DriftStatus, Quest, QuestSnapshot
from questsync.quests.normalizer import normalize
from questsync.updater.collaborators import CommandRebuilder, DeclineRelauncher
from questsync.updater.git import GitRevisionSource
from questsync.updater.tracker import DriftTracker
from questsync.utils import format_commit, format_quest_status


def _success(msg: str) -> str:
    """Format success message with green checkmark."""
    return click.style("✓", fg="green") + " " + msg


def _error(msg: str) -> str:
    """Format error message with red X."""
    return click.style("✗", fg="red") + " " + msg


def _info(msg: str) -> str:
    """Format info message with blue arrow."""
    return click.style("→", fg="blue") + " " + msg


def _config(ctx: click.Context) -> QuestSyncConfig:
    config: QuestSyncConfig = ctx.obj["config"]
    return config


def _build_tracker(config: QuestSyncConfig) -> DriftTracker:
    updater = config.updater
    source = GitRevisionSource(
        updater.install_path,
        git_executable=updater.git_executable,
        sandboxed=updater.sandboxed,
    )
    return DriftTracker(
        source,
        rebuilder=CommandRebuilder(updater.build_command, updater.install_path),
        relauncher=DeclineRelauncher(),
    )


@click.group()
@click.version_option(version=__version__, prog_name="questsync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Path to .questsync.yaml (searched upwards by default)",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Path | None) -> None:
    """QuestSync - quest progress discovery and self-updating install."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    try:
        config = load_config(config_path)
    except ConfigError as e:
        click.echo(_error(str(e)), err=True)
        sys.exit(1)

    ctx.obj["config"] = config
    setup_logging("DEBUG" if verbose else config.log_level)


# =============================================================================
# UPDATE COMMANDS
# =============================================================================


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Show whether the install is behind its upstream branch."""
    tracker = _build_tracker(_config(ctx))
    state = asyncio.run(tracker.check())

    if state.status is DriftStatus.CHECK_FAILED:
        click.echo(_error(f"Update check failed: {state.last_message}"), err=True)
        sys.exit(1)

    if state.repo_identity is not None:
        click.echo(_info(f"Repository: {state.repo_identity.remote_url}"))
        click.echo(_info(f"Local revision: {state.repo_identity.local_revision[:7]}"))

    if not state.is_outdated:
        click.echo(_success("Up to date"))
        return

    count = len(state.pending_commits)
    click.echo(click.style(f"{count} new commit{'s' if count != 1 else ''}:", bold=True))
    for commit in state.pending_commits:
        click.echo("  " + format_commit(commit))


@cli.command()
@click.option("--yes", "-y", is_flag=True, help="Apply without asking")
@click.pass_context
def update(ctx: click.Context, yes: bool) -> None:
    """Check for an update and apply it after confirmation."""
    tracker = _build_tracker(_config(ctx))
    state = asyncio.run(tracker.check())

    if state.status is DriftStatus.CHECK_FAILED:
        click.echo(_error(f"Update check failed: {state.last_message}"), err=True)
        sys.exit(1)

    if not state.is_outdated:
        click.echo(_success("Already up to date"))
        return

    count = len(state.pending_commits)
    click.echo(_info(f"Update available! {count} new commit{'s' if count != 1 else ''}."))
    for commit in state.pending_commits:
        click.echo("  " + format_commit(commit))

    if not yes and not click.confirm("Update now?", default=True):
        click.echo("Aborted.")
        return

    outcome = asyncio.run(tracker.apply())

    if outcome.status is ApplyStatus.APPLIED:
        click.echo(_success(outcome.message))
        click.echo(_info("Restart the host to load the new version."))
        return

    click.echo(_error(outcome.message), err=True)
    sys.exit(1)


# =============================================================================
# QUEST COMMANDS
# =============================================================================


def _load_records(path: Path) -> list[Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("quests", data)
        if isinstance(data, dict):
            data = list(data.values())
    if not isinstance(data, list):
        raise click.BadParameter("expected a list of quest records", param_hint="FILE")
    return data


def _echo_quest(quest: Quest, now: datetime) -> None:
    click.echo(f"  {click.style(quest.quest_name, bold=True)} ({quest.application_name})")
    click.echo(f"    id: {quest.id} | {quest.task_label} | reward: {quest.reward_name}")
    if quest.is_enrolled:
        click.echo(
            f"    {quest.display_seconds_done}/{quest.seconds_needed}s "
            f"({quest.progress_percent}%) | {format_quest_status(quest, now)}"
        )
    else:
        click.echo(
            f"    {quest.minutes_required} min required | {format_quest_status(quest, now)}"
        )


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def quests(ctx: click.Context, file: Path) -> None:
    """List quests from a JSON dump of raw registry records."""
    try:
        records = _load_records(file)
    except json.JSONDecodeError as e:
        click.echo(_error(f"Invalid JSON: {e}"), err=True)
        sys.exit(1)

    now = datetime.now(UTC)
    found = normalize(records, now, cdn_base_url=_config(ctx).quests.cdn_base_url)
    snapshot = QuestSnapshot(quests=tuple(found), taken_at=now)
    enrolled = snapshot.enrolled
    not_enrolled = snapshot.not_enrolled

    if not snapshot.available:
        click.echo(_info("No quests available"))
        return

    if enrolled:
        click.echo(click.style(f"Your Quests ({len(enrolled)})", bold=True))
        for quest in enrolled:
            _echo_quest(quest, now)

    if not_enrolled:
        if enrolled:
            click.echo()
        click.echo(click.style(f"Available Quests ({len(not_enrolled)})", bold=True))
        for quest in not_enrolled:
            _echo_quest(quest, now)


@cli.command()
@click.argument("quest_id")
@click.pass_context
def enroll(ctx: click.Context, quest_id: str) -> None:
    """Enroll in a quest by id."""
    from questsync.actions import ActionGateway

    config = _config(ctx)

    async def run_enroll() -> tuple[bool, str]:
        gateway = ActionGateway(config.api, config.script)
        try:
            outcome = await gateway.enroll(quest_id)
        finally:
            await gateway.close()
        return outcome.ok, outcome.message

    ok, message = asyncio.run(run_enroll())
    if not ok:
        click.echo(_error(message), err=True)
        sys.exit(1)
    click.echo(_success(message))


@cli.command()
@click.pass_context
def script(ctx: click.Context) -> None:
    """Print the remote quest script. It is never executed."""
    from questsync.actions import ActionGateway

    config = _config(ctx)

    async def fetch() -> str:
        gateway = ActionGateway(config.api, config.script)
        try:
            return await gateway.fetch_remote_script()
        finally:
            await gateway.close()

    try:
        content = asyncio.run(fetch())
    except ScriptError as e:
        click.echo(_error(e.message), err=True)
        sys.exit(1)

    click.echo(content)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
