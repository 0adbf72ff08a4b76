"""CLI entry point for the jjdeck command."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import click

from jjdeck import __version__
from jjdeck.config import ConfigError, DeckConfig, load_config
from jjdeck.logging import get_logger, setup_logging
from jjdeck.vcs.client import VcsClient
from jjdeck.vcs.errors import CommandError, CommandFailed
from jjdeck.vcs.gateway import CommandGateway

_log = get_logger("cli")

MIN_JJ_VERSION = (0, 33, 0)

# jj config keys that provide defaults for unset jjdeck settings.
_JJ_REVSET_KEY = "revsets.log"
_JJ_PREFIX_KEY = "git.push-bookmark-prefix"
_JJ_DIFF_KEYS = ("ui.diff-formatter", "ui.diff.format")


def _format_version(version: tuple[int, int, int]) -> str:
    return ".".join(str(v) for v in version)


async def _prepare(client: VcsClient, config: DeckConfig, ignore_version: bool) -> str:
    """Check the repository and jj version, then pull defaults from jj config.

    Returns the repository root.
    """
    try:
        root = await client.root()
    except CommandFailed as exc:
        raise click.ClickException(f"Not a jj repository: {exc}") from exc
    except CommandError as exc:
        raise click.ClickException(str(exc)) from exc

    try:
        version = await client.version()
    except CommandError as exc:
        raise click.ClickException(f"Cannot determine jj version: {exc}") from exc
    if version is None:
        _log.warning("could not parse jj version output")
    elif version < MIN_JJ_VERSION and not ignore_version:
        raise click.ClickException(
            f"jj {_format_version(version)} is too old; jjdeck needs "
            f"{_format_version(MIN_JJ_VERSION)} or newer (use --ignore-jj-version to try anyway)"
        )

    revset = await client.config_value(_JJ_REVSET_KEY)
    prefix = await client.config_value(_JJ_PREFIX_KEY)
    diff_format = None
    for key in _JJ_DIFF_KEYS:
        if diff_format := await client.config_value(key):
            break
    config.apply_vcs_defaults(revset=revset, bookmark_prefix=prefix, diff_format=diff_format)
    return root


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-p",
    "--path",
    "repo_path",
    default=".",
    type=click.Path(exists=True, file_okay=False),
    help="Path of the jj repository",
)
@click.option("-r", "--revset", default=None, help="Revset shown in the log tab")
@click.option(
    "-c",
    "--config",
    "config_path",
    default=None,
    envvar="JJDECK_CONFIG",
    type=click.Path(),
    help="Config file (default: .jjdeck.yaml or ~/.config/jjdeck/config.yaml)",
)
@click.option("--jj-bin", default=None, help="jj executable to run")
@click.option("--ignore-jj-version", is_flag=True, help="Skip the minimum jj version check")
@click.option(
    "--log-level",
    default=None,
    envvar="JJDECK_LOG_LEVEL",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging verbosity",
)
@click.option(
    "--log-file", default=None, envvar="JJDECK_LOG_FILE", type=click.Path(), help="Log to file"
)
@click.version_option(__version__, package_name="jjdeck")
def main(
    repo_path: str,
    revset: str | None,
    config_path: str | None,
    jj_bin: str | None,
    ignore_jj_version: bool,
    log_level: str | None,
    log_file: str | None,
) -> None:
    """jjdeck -- a terminal front-end for the jj version control system."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc
    config.apply_env_overrides()

    setup_logging(
        level=log_level or config.log_level,
        log_file=log_file or config.log_file,
        history_file=config.history_file,
    )
    for error in config.validate():
        _log.warning("config: %s", error)

    binary = jj_bin or config.jj_bin
    if shutil.which(binary) is None:
        raise click.ClickException(f"Cannot find the jj executable '{binary}'")

    gateway = CommandGateway(binary=binary, cwd=Path(repo_path).resolve())
    client = VcsClient(gateway)
    root = asyncio.run(_prepare(client, config, ignore_jj_version))
    gateway.cwd = root
    _log.info("starting in %s", root)

    _run_app(client, config, revset)


def _run_app(client: VcsClient, config: DeckConfig, revset: str | None) -> None:
    from jjdeck.keys.keymap import Keymap
    from jjdeck.state.machine import StateMachine
    from jjdeck.ui.app import DeckApp

    keymap = Keymap.from_config(config.keybinds)
    machine = StateMachine(
        client.gateway.command_log,
        revset=revset,
        default_revset=config.revset,
        diff_format=config.effective_diff_format,
        bookmark_prefix=config.effective_bookmark_prefix,
    )
    DeckApp(client, config, keymap, machine).run()
