"""Tests for cli.py: the click entry point and start-up checks."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import click
import pytest
from click.testing import CliRunner

from jjdeck import __version__
from jjdeck.cli import MIN_JJ_VERSION, _prepare, main
from jjdeck.config import DeckConfig
from jjdeck.vcs.errors import CommandFailed, CommandUnavailable
from jjdeck.vcs.models import DiffFormat


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    config = tmp_path / "jjdeck.yaml"
    config.write_text("revset: 'trunk()..@'\nlayout: vertical\n")
    return str(config)


class _FakeClient:
    """Stands in for VcsClient during start-up checks."""

    def __init__(self, root="/repo", version=(0, 35, 0), values=None, root_error=None):
        self._root = root
        self._version = version
        self._values = values or {}
        self._root_error = root_error

    async def root(self):
        if self._root_error is not None:
            raise self._root_error
        return self._root

    async def version(self):
        return self._version

    async def config_value(self, name):
        return self._values.get(name)


# --- Help / Version ---


def test_help(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "jj version control system" in result.output
    assert "--revset" in result.output


def test_version(runner):
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert "version" in result.output.lower()
    assert __version__ in result.output


# --- main ---


def test_missing_jj_binary(runner, tmp_path, config_file):
    with patch("jjdeck.cli.shutil.which", return_value=None):
        result = runner.invoke(
            main, ["-p", str(tmp_path), "-c", config_file, "--jj-bin", "no-jj"]
        )
    assert result.exit_code == 1
    assert "Cannot find the jj executable 'no-jj'" in result.output


def test_missing_config_file(runner, tmp_path):
    result = runner.invoke(main, ["-p", str(tmp_path), "-c", str(tmp_path / "none.yaml")])
    assert result.exit_code == 1
    assert "Config file not found" in result.output


def test_unreadable_config_file(runner, tmp_path):
    bad = tmp_path / "bad.yaml"
    bad.write_text("keybinds: {log: [\n")
    result = runner.invoke(main, ["-p", str(tmp_path), "-c", str(bad)])
    assert result.exit_code == 1
    assert "Cannot read" in result.output


def test_starts_app_in_repository_root(runner, tmp_path, config_file):
    run_app = MagicMock()
    prepare = AsyncMock(return_value="/repo/root")
    with (
        patch("jjdeck.cli.shutil.which", return_value="/usr/bin/jj"),
        patch("jjdeck.cli._prepare", prepare),
        patch("jjdeck.cli._run_app", run_app),
    ):
        result = runner.invoke(main, ["-p", str(tmp_path), "-c", config_file, "-r", "mine()"])

    assert result.exit_code == 0, result.output
    client, config, revset = run_app.call_args.args
    assert revset == "mine()"
    assert config.revset == "trunk()..@"
    assert config.layout == "vertical"
    assert client.gateway.cwd == "/repo/root"
    assert prepare.call_args.args[2] is False


def test_config_from_env(runner, tmp_path, config_file, monkeypatch):
    monkeypatch.setenv("JJDECK_CONFIG", config_file)
    monkeypatch.setenv("JJDECK_JJ_BIN", "/opt/jj")
    run_app = MagicMock()
    which = MagicMock(return_value="/opt/jj")
    with (
        patch("jjdeck.cli.shutil.which", which),
        patch("jjdeck.cli._prepare", AsyncMock(return_value="/repo")),
        patch("jjdeck.cli._run_app", run_app),
    ):
        result = runner.invoke(main, ["-p", str(tmp_path)])

    assert result.exit_code == 0, result.output
    which.assert_called_once_with("/opt/jj")
    assert run_app.call_args.args[1].revset == "trunk()..@"


# --- _prepare ---


class TestPrepare:
    @pytest.mark.asyncio
    async def test_applies_jj_defaults(self):
        client = _FakeClient(
            values={
                "revsets.log": "present(@) | ancestors(immutable_heads().., 2)",
                "git.push-bookmark-prefix": "me/push-",
                "ui.diff.format": "git",
            }
        )
        config = DeckConfig()
        root = await _prepare(client, config, ignore_version=False)
        assert root == "/repo"
        assert config.revset.startswith("present(@)")
        assert config.effective_bookmark_prefix == "me/push-"
        assert config.effective_diff_format is DiffFormat.GIT

    @pytest.mark.asyncio
    async def test_user_settings_beat_jj_defaults(self):
        client = _FakeClient(values={"revsets.log": "all()", "ui.diff-formatter": ":git"})
        config = DeckConfig(revset="mine()", diff_format=DiffFormat.COLOR_WORDS)
        await _prepare(client, config, ignore_version=False)
        assert config.revset == "mine()"
        assert config.diff_format is DiffFormat.COLOR_WORDS

    @pytest.mark.asyncio
    async def test_not_a_repository(self):
        error = CommandFailed(("root",), "Error: There is no jj repo in \".\"", 1)
        with pytest.raises(click.ClickException, match="Not a jj repository"):
            await _prepare(_FakeClient(root_error=error), DeckConfig(), ignore_version=False)

    @pytest.mark.asyncio
    async def test_jj_not_runnable(self):
        error = CommandUnavailable(("root",), "permission denied")
        with pytest.raises(click.ClickException, match="permission denied"):
            await _prepare(_FakeClient(root_error=error), DeckConfig(), ignore_version=False)

    @pytest.mark.asyncio
    async def test_old_version_rejected(self):
        old = (MIN_JJ_VERSION[0], MIN_JJ_VERSION[1] - 1, 0)
        with pytest.raises(click.ClickException, match="too old"):
            await _prepare(_FakeClient(version=old), DeckConfig(), ignore_version=False)

    @pytest.mark.asyncio
    async def test_old_version_allowed_when_ignored(self):
        old = (MIN_JJ_VERSION[0], MIN_JJ_VERSION[1] - 1, 0)
        assert await _prepare(_FakeClient(version=old), DeckConfig(), ignore_version=True)

    @pytest.mark.asyncio
    async def test_unparsable_version_is_tolerated(self):
        assert await _prepare(_FakeClient(version=None), DeckConfig(), ignore_version=False)
