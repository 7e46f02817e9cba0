"""Tests for the CLI."""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from click.testing import CliRunner
from pytest_httpx import HTTPXMock

from questsync.cli import cli
from questsync.constants import DEFAULT_SCRIPT_URL
from questsync.models import (
    Commit,
    OperationResult,
    RepoIdentity,
    RevisionFailed,
    RevisionOk,
)
from questsync.updater.collaborators import DeclineRelauncher
from questsync.updater.tracker import DriftTracker

COMMIT = Commit(
    short_hash="a1b2c3d",
    full_hash="a1b2c3d" + "0" * 33,
    author="Alice",
    message="Fix the progress bar",
)


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """Path to a config file that does not exist, so defaults are used."""
    return tmp_path / "questsync.yaml"


@pytest.fixture
def source() -> MagicMock:
    """Revision source with one pending commit."""
    source = MagicMock()
    source.install_root = Path("/opt/questsync")
    source.get_repo_identity = AsyncMock(
        return_value=RevisionOk(
            value=RepoIdentity(remote_url="https://github.com/x/questsync", local_revision="f" * 40)
        )
    )
    source.get_new_commits = AsyncMock(return_value=RevisionOk(value=[COMMIT]))
    source.pull = AsyncMock(return_value=RevisionOk(value=""))
    return source


@pytest.fixture
def patched_tracker(source: MagicMock, monkeypatch: pytest.MonkeyPatch) -> DriftTracker:
    """Route the CLI's tracker to the mock source."""
    rebuilder = MagicMock()
    rebuilder.rebuild = AsyncMock(return_value=OperationResult(ok=True))
    tracker = DriftTracker(source, rebuilder=rebuilder, relauncher=DeclineRelauncher())
    monkeypatch.setattr("questsync.cli._build_tracker", lambda config: tracker)
    return tracker


class TestCheckCommand:
    """Tests for `questsync check`."""

    def test_lists_new_commits(
        self, runner: CliRunner, config_path: Path, patched_tracker: DriftTracker
    ) -> None:
        """Pending commits are listed with short hash and author."""
        result = runner.invoke(cli, ["--config", str(config_path), "check"])

        assert result.exit_code == 0
        assert "https://github.com/x/questsync" in result.output
        assert "1 new commit:" in result.output
        assert "a1b2c3d Fix the progress bar (Alice)" in result.output

    def test_up_to_date(
        self,
        runner: CliRunner,
        config_path: Path,
        source: MagicMock,
        patched_tracker: DriftTracker,
    ) -> None:
        """An up to date install says so."""
        source.get_new_commits.return_value = RevisionOk(value=[])

        result = runner.invoke(cli, ["--config", str(config_path), "check"])

        assert result.exit_code == 0
        assert "Up to date" in result.output

    def test_failure_exits_nonzero(
        self,
        runner: CliRunner,
        config_path: Path,
        source: MagicMock,
        patched_tracker: DriftTracker,
    ) -> None:
        """A failed check exits with 1."""
        source.get_repo_identity.return_value = RevisionFailed(message="not a git repository")

        result = runner.invoke(cli, ["--config", str(config_path), "check"])

        assert result.exit_code == 1
        assert "not a git repository" in result.output


class TestUpdateCommand:
    """Tests for `questsync update`."""

    def test_update_with_yes(
        self,
        runner: CliRunner,
        config_path: Path,
        source: MagicMock,
        patched_tracker: DriftTracker,
    ) -> None:
        """--yes applies without asking."""
        result = runner.invoke(cli, ["--config", str(config_path), "update", "--yes"])

        assert result.exit_code == 0
        assert "Update applied successfully." in result.output
        source.pull.assert_awaited_once()

    def test_update_declined(
        self,
        runner: CliRunner,
        config_path: Path,
        source: MagicMock,
        patched_tracker: DriftTracker,
    ) -> None:
        """Answering no leaves the install alone."""
        result = runner.invoke(cli, ["--config", str(config_path), "update"], input="n\n")

        assert result.exit_code == 0
        assert "Aborted." in result.output
        source.pull.assert_not_awaited()

    def test_pull_failure(
        self,
        runner: CliRunner,
        config_path: Path,
        source: MagicMock,
        patched_tracker: DriftTracker,
    ) -> None:
        """A failed pull exits with 1."""
        source.pull.return_value = RevisionFailed(message="merge conflict")

        result = runner.invoke(cli, ["--config", str(config_path), "update", "-y"])

        assert result.exit_code == 1
        assert "Failed to update: merge conflict" in result.output


class TestQuestsCommand:
    """Tests for `questsync quests`."""

    def test_lists_enrolled_and_available(
        self, runner: CliRunner, config_path: Path, tmp_path: Path
    ) -> None:
        """Quests are grouped by enrollment."""
        records = [
            {
                "id": "1",
                "config": {
                    "expiresAt": "2999-01-01T00:00:00Z",
                    "messages": {"questName": "Watch the trailer"},
                    "application": {"name": "Game One"},
                    "taskConfig": {"tasks": {"WATCH_VIDEO": {"target": 900}}},
                },
                "userStatus": {
                    "enrolledAt": "2026-01-01T00:00:00Z",
                    "progress": {"WATCH_VIDEO": {"value": 450}},
                },
            },
            {
                "id": "2",
                "config": {
                    "expiresAt": "2999-01-01T00:00:00Z",
                    "messages": {"questName": "Play for 15 minutes"},
                    "application": {"name": "Game Two"},
                    "taskConfig": {"tasks": {"PLAY_ON_DESKTOP": {"target": 900}}},
                },
            },
        ]
        dump = tmp_path / "quests.json"
        dump.write_text(json.dumps({"quests": records}))

        result = runner.invoke(cli, ["--config", str(config_path), "quests", str(dump)])

        assert result.exit_code == 0
        assert "Your Quests (1)" in result.output
        assert "450/900s (50%)" in result.output
        assert "Available Quests (1)" in result.output
        assert "15 min required" in result.output

    def test_no_quests(self, runner: CliRunner, config_path: Path, tmp_path: Path) -> None:
        """An empty dump reports no quests."""
        dump = tmp_path / "quests.json"
        dump.write_text("[]")

        result = runner.invoke(cli, ["--config", str(config_path), "quests", str(dump)])

        assert result.exit_code == 0
        assert "No quests available" in result.output

    def test_invalid_json(self, runner: CliRunner, config_path: Path, tmp_path: Path) -> None:
        """A broken dump exits with 1."""
        dump = tmp_path / "quests.json"
        dump.write_text("{not json")

        result = runner.invoke(cli, ["--config", str(config_path), "quests", str(dump)])

        assert result.exit_code == 1
        assert "Invalid JSON" in result.output


class TestActionCommands:
    """Tests for `questsync enroll` and `questsync script`."""

    def test_enroll(self, runner: CliRunner, config_path: Path, httpx_mock: HTTPXMock) -> None:
        """A successful enroll prints the success message."""
        httpx_mock.add_response(
            url="https://discord.com/api/v9/quests/42/enroll",
            method="POST",
            json={},
        )

        result = runner.invoke(cli, ["--config", str(config_path), "enroll", "42"])

        assert result.exit_code == 0
        assert "Successfully enrolled in quest!" in result.output

    def test_enroll_failure(
        self, runner: CliRunner, config_path: Path, httpx_mock: HTTPXMock
    ) -> None:
        """A rejected enroll exits with 1."""
        httpx_mock.add_response(
            url="https://discord.com/api/v9/quests/42/enroll",
            method="POST",
            status_code=401,
        )

        result = runner.invoke(cli, ["--config", str(config_path), "enroll", "42"])

        assert result.exit_code == 1
        assert "Request API returned 401" in result.output

    def test_script_prints_without_running(
        self, runner: CliRunner, config_path: Path, httpx_mock: HTTPXMock
    ) -> None:
        """The script is printed, never executed."""
        httpx_mock.add_response(url=DEFAULT_SCRIPT_URL, text="```js\nconsole.log(1)\n```\n")

        result = runner.invoke(cli, ["--config", str(config_path), "script"])

        assert result.exit_code == 0
        assert "console.log(1)" in result.output

    def test_invalid_config(self, runner: CliRunner, tmp_path: Path) -> None:
        """An invalid config file exits with 1."""
        path = tmp_path / "bad.yaml"
        path.write_text("log_level: LOUD\n")

        result = runner.invoke(cli, ["--config", str(path), "check"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
