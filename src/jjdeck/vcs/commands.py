"""Argument vectors for jj commands.

Each builder returns a tuple of discrete arguments.  User-supplied strings
(descriptions, bookmark names, paths) are always a single element so no
quoting or shell interpretation is ever involved.
"""

from __future__ import annotations

import shlex

# -- Templates ---------------------------------------------------------------

# Machine-readable marker embedded in graph output to map lines to changes.
HEAD_TEMPLATE = (
    '"[" ++ change_id ++ "|" ++ commit_id ++ "|" ++ divergent ++ "|" ++ immutable ++ "]"'
)

# One marker per graph line of ``builtin_log_compact``: two lines per change,
# one for the root commit.
LINE_MAP_TEMPLATE = (
    f'if(root, {HEAD_TEMPLATE} ++ "\\n", '
    f'{HEAD_TEMPLATE} ++ "\\n" ++ {HEAD_TEMPLATE} ++ "\\n")'
)

# Tab-separated detail row; the description's first line is last so it may
# contain anything except a newline.
CHANGE_TEMPLATE = (
    "change_id ++ \"\\t\" ++ commit_id ++ \"\\t\" ++ divergent ++ \"\\t\" ++ immutable"
    " ++ \"\\t\" ++ empty ++ \"\\t\" ++ author.email()"
    " ++ \"\\t\" ++ author.timestamp().utc().format(\"%s\")"
    " ++ \"\\t\" ++ local_bookmarks.map(|b| b.name()).join(\",\")"
    " ++ \"\\t\" ++ description.first_line() ++ \"\\n\""
)

BOOKMARK_TEMPLATE = (
    "name ++ \"\\t\" ++ if(remote, remote, \".\") ++ \"\\t\" ++ present ++ \"\\t\" ++ tracked"
    " ++ \"\\t\" ++ if(normal_target, normal_target.change_id(), \"\")"
    " ++ \"\\t\" ++ if(normal_target, normal_target.committer().timestamp().utc().format(\"%s\"), \"0\")"
    " ++ \"\\t\" ++ if(normal_target, normal_target.immutable(), \"false\")"
    " ++ \"\\n\""
)

GRAPH_TEMPLATE = "builtin_log_compact"


def quote_fileset(path: str) -> str:
    """Exact-path fileset expression, e.g. ``file:"a \\"b\\".txt"``."""
    escaped = path.replace("\\", "\\\\").replace('"', '\\"')
    return f'file:"{escaped}"'


# -- Queries ------------------------------------------------------------------


def log_graph(revset: str | None, template: str = GRAPH_TEMPLATE) -> tuple[str, ...]:
    args = ["log", "--template", template]
    if revset:
        args += ["-r", revset]
    return tuple(args)


def log_changes(revset: str | None) -> tuple[str, ...]:
    args = ["log", "--no-graph", "--template", CHANGE_TEMPLATE]
    if revset:
        args += ["-r", revset]
    return tuple(args)


def head() -> tuple[str, ...]:
    return ("log", "--no-graph", "--template", CHANGE_TEMPLATE, "-r", "@", "--limit", "1")


def show(rev: str, diff_flag: str) -> tuple[str, ...]:
    return ("show", "-r", rev, diff_flag)


def description(rev: str) -> tuple[str, ...]:
    return ("log", "--no-graph", "--template", "description", "-r", rev, "--limit", "1")


def files_summary(rev: str) -> tuple[str, ...]:
    return ("diff", "-r", rev, "--summary")


def file_diff(rev: str, path: str, diff_flag: str) -> tuple[str, ...]:
    return ("diff", "-r", rev, diff_flag, quote_fileset(path))


def conflicts(rev: str) -> tuple[str, ...]:
    return ("resolve", "--list", "-r", rev)


def bookmark_list(all_remotes: bool) -> tuple[str, ...]:
    args = ["bookmark", "list", "--template", BOOKMARK_TEMPLATE]
    if all_remotes:
        args.append("--all-remotes")
    return tuple(args)


def config_get(name: str) -> tuple[str, ...]:
    return ("config", "get", name)


def root() -> tuple[str, ...]:
    return ("root",)


def version() -> tuple[str, ...]:
    return ("version",)


# -- Mutations ----------------------------------------------------------------


def new(rev: str, message: str | None = None) -> tuple[str, ...]:
    args = ["new", rev]
    if message:
        args += ["-m", message]
    return tuple(args)


def edit(rev: str, ignore_immutable: bool = False) -> tuple[str, ...]:
    args = ["edit", rev]
    if ignore_immutable:
        args.append("--ignore-immutable")
    return tuple(args)


def abandon(rev: str) -> tuple[str, ...]:
    return ("abandon", rev)


def describe(rev: str, message: str) -> tuple[str, ...]:
    return ("describe", rev, "-m", message)


def squash_into(rev: str, ignore_immutable: bool = False) -> tuple[str, ...]:
    """Move the working-copy change's content into *rev*."""
    args = ["squash", "--into", rev]
    if ignore_immutable:
        args.append("--ignore-immutable")
    return tuple(args)


def bookmark_create(name: str, rev: str | None = None) -> tuple[str, ...]:
    args = ["bookmark", "create", name]
    if rev:
        args += ["-r", rev]
    return tuple(args)


def bookmark_set(name: str, rev: str) -> tuple[str, ...]:
    return ("bookmark", "set", name, "-r", rev, "--allow-backwards")


def bookmark_rename(old: str, new_name: str) -> tuple[str, ...]:
    return ("bookmark", "rename", old, new_name)


def bookmark_delete(name: str) -> tuple[str, ...]:
    return ("bookmark", "delete", name)


def bookmark_forget(name: str) -> tuple[str, ...]:
    return ("bookmark", "forget", name)


def bookmark_track(ref: str) -> tuple[str, ...]:
    return ("bookmark", "track", ref)


def bookmark_untrack(ref: str) -> tuple[str, ...]:
    return ("bookmark", "untrack", ref)


def git_fetch(all_remotes: bool = False) -> tuple[str, ...]:
    args = ["git", "fetch"]
    if all_remotes:
        args.append("--all-remotes")
    return tuple(args)


def git_push(
    rev: str | None = None, *, all_bookmarks: bool = False, allow_new: bool = False
) -> tuple[str, ...]:
    args = ["git", "push"]
    if allow_new:
        args.append("--allow-new")
    if all_bookmarks:
        args.append("--all")
    elif rev:
        args += ["-r", rev]
    return tuple(args)


def file_untrack(path: str) -> tuple[str, ...]:
    return ("file", "untrack", quote_fileset(path))


def parse_command_line(line: str) -> tuple[str, ...]:
    """Split a command typed at the ``:`` prompt.

    A leading ``jj`` is dropped so both ``jj git fetch`` and ``git fetch``
    work.  Raises ValueError for unbalanced quotes or an empty line.
    """
    args = shlex.split(line)
    if args and args[0] == "jj":
        args = args[1:]
    if not args:
        raise ValueError("Empty command")
    return tuple(args)
