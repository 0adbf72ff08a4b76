"""YAML configuration loader for jjdeck."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from jjdeck.logging import get_logger
from jjdeck.vcs.models import DiffFormat

_log = get_logger("config")

_HEX_COLOR_RE = re.compile(r"^#[0-9a-fA-F]{6}$")
_LAYOUTS = ("horizontal", "vertical")
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

DEFAULT_HIGHLIGHT = "#323296"
DEFAULT_BOOKMARK_PREFIX = "push-"


class ConfigError(Exception):
    """Raised when a config file cannot be read as YAML."""


@dataclass
class DeckConfig:
    jj_bin: str = "jj"
    highlight_color: str = DEFAULT_HIGHLIGHT
    diff_format: DiffFormat | None = None  # None: ask jj, then color-words
    revset: str | None = None  # None: jj's revsets.log
    bookmark_prefix: str | None = None  # None: jj's git.push-bookmark-prefix
    layout: str = "horizontal"
    layout_percent: int = 50
    log_level: str = "WARNING"
    log_file: str | None = None
    history_file: str | None = None  # None: commands.log beside log_file
    keybinds: dict[str, Any] = field(default_factory=dict)
    source_path: str | None = None
    # Entries that were ignored while parsing; shown once at start-up.
    warnings: list[str] = field(default_factory=list)

    def validate(self) -> list[str]:
        """Validate config, returning a list of error messages (empty = valid)."""
        errors: list[str] = []
        if not self.jj_bin:
            errors.append("jj_bin must not be empty")
        if not _HEX_COLOR_RE.match(self.highlight_color):
            errors.append(f"highlight_color must be #rrggbb, got '{self.highlight_color}'")
        if self.layout not in _LAYOUTS:
            errors.append(f"layout must be 'horizontal' or 'vertical', got '{self.layout}'")
        if not 10 <= self.layout_percent <= 90:
            errors.append("layout_percent must be between 10 and 90")
        if self.log_level.upper() not in _LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(_LOG_LEVELS)}")
        for path in (self.log_file, self.history_file):
            if not path:
                continue
            log_parent = Path(path).expanduser().parent
            if not log_parent.exists():
                errors.append(f"Log file parent directory does not exist: {log_parent}")
        return errors

    def apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""

        if val := os.environ.get("JJDECK_JJ_BIN"):
            self.jj_bin = val
        if val := os.environ.get("JJDECK_REVSET"):
            self.revset = val
        if val := os.environ.get("JJDECK_DIFF_FORMAT"):
            try:
                self.diff_format = DiffFormat.parse(val)
            except ValueError:
                self._warn(f"JJDECK_DIFF_FORMAT: unknown diff format '{val}'")

    def apply_vcs_defaults(
        self,
        revset: str | None = None,
        bookmark_prefix: str | None = None,
        diff_format: str | None = None,
    ) -> None:
        """Fill settings left unset by the file and env from jj's own config."""
        if self.revset is None and revset:
            self.revset = revset
        if self.bookmark_prefix is None and bookmark_prefix:
            self.bookmark_prefix = bookmark_prefix
        if self.diff_format is None and diff_format:
            try:
                self.diff_format = DiffFormat.parse(diff_format)
            except ValueError:
                _log.info("ignoring jj diff format %r", diff_format)

    @property
    def effective_diff_format(self) -> DiffFormat:
        return self.diff_format or DiffFormat.COLOR_WORDS

    @property
    def effective_bookmark_prefix(self) -> str:
        return self.bookmark_prefix if self.bookmark_prefix is not None else DEFAULT_BOOKMARK_PREFIX

    def _warn(self, message: str) -> None:
        _log.warning(message)
        self.warnings.append(message)


def load_config(path: str | None = None) -> DeckConfig:
    """Load config from explicit path, .jjdeck.yaml in CWD, or ~/.config/jjdeck/config.yaml."""
    candidates = []
    if path:
        candidates.append(Path(path))
    else:
        candidates.append(Path.cwd() / ".jjdeck.yaml")
        candidates.append(Path.home() / ".config" / "jjdeck" / "config.yaml")

    for candidate in candidates:
        if candidate.exists():
            return _parse_config(candidate)

    if path:
        raise ConfigError(f"Config file not found: {path}")
    return DeckConfig()


def _parse_config(path: Path) -> DeckConfig:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")

    config = DeckConfig(source_path=str(path))

    jj_bin = data.get("jj_bin", "jj")
    if isinstance(jj_bin, str) and jj_bin:
        config.jj_bin = jj_bin
    else:
        config._warn(f"jj_bin: expected a program name, got {jj_bin!r}")

    color = str(data.get("highlight_color", DEFAULT_HIGHLIGHT))
    if _HEX_COLOR_RE.match(color):
        config.highlight_color = color
    else:
        config._warn(f"highlight_color: expected #rrggbb, got '{color}'")

    if (fmt := data.get("diff_format")) is not None:
        try:
            config.diff_format = DiffFormat.parse(str(fmt))
        except ValueError:
            config._warn(f"diff_format: unknown format '{fmt}'")

    if (revset := data.get("revset")) is not None:
        config.revset = str(revset)
    if (prefix := data.get("bookmark_prefix")) is not None:
        config.bookmark_prefix = str(prefix)

    layout = str(data.get("layout", "horizontal")).lower()
    if layout in _LAYOUTS:
        config.layout = layout
    else:
        config._warn(f"layout: expected horizontal or vertical, got '{layout}'")

    percent = data.get("layout_percent", 50)
    if isinstance(percent, int) and not isinstance(percent, bool) and 10 <= percent <= 90:
        config.layout_percent = percent
    else:
        config._warn(f"layout_percent: expected an integer 10..90, got {percent!r}")

    config.log_level = str(data.get("log_level", "WARNING")).upper()
    config.log_file = data.get("log_file")
    config.history_file = data.get("history_file")

    keybinds = data.get("keybinds", {})
    if isinstance(keybinds, dict):
        config.keybinds = keybinds
    else:
        config._warn("keybinds: expected a mapping of contexts")

    return config
