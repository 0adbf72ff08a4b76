"""EffectRunner: executes the requests the state machine returns."""

from __future__ import annotations

from typing import Any

from jjdeck.logging import get_logger
from jjdeck.state.requests import CancelCall, Completion, Mutation, Query, QueryOp
from jjdeck.vcs.client import VcsClient
from jjdeck.vcs.errors import CommandError
from jjdeck.vcs.gateway import CallHandle

_log = get_logger("effects")


class EffectRunner:
    """Turns :class:`Query`/:class:`Mutation` requests into jj calls.

    Every request resolves to exactly one :class:`Completion`; command
    failures become ``Completion.error`` rather than propagating.
    """

    def __init__(self, client: VcsClient) -> None:
        self.client = client
        self._handles: dict[int, CallHandle] = {}

    async def run_query(self, query: Query) -> Completion:
        try:
            value = await self._query(query)
        except CommandError as exc:
            _log.info("%s query failed: %s", query.op.value, exc)
            return Completion(query.token, error=exc)
        return Completion(query.token, value=value)

    async def _query(self, query: Query) -> Any:
        p = query.params
        client = self.client
        if query.op is QueryOp.LOG:
            return await client.log(p.get("revset"))
        if query.op is QueryOp.SHOW:
            return await client.show(p["rev"], p["diff_format"])
        if query.op is QueryOp.DESCRIPTION:
            return await client.description(p["rev"])
        if query.op is QueryOp.FILES:
            return await client.files(p["rev"])
        if query.op is QueryOp.FILE_DIFF:
            return await client.file_diff(p["rev"], p["path"], p["diff_format"])
        if query.op is QueryOp.BOOKMARKS:
            return await client.bookmarks(p.get("all_remotes", False))
        if query.op is QueryOp.BOOKMARK_SHOW:
            return await client.bookmark_show(p["bookmark"], p["diff_format"])
        raise ValueError(f"unknown query: {query.op}")

    def submit_mutation(self, mutation: Mutation) -> CallHandle:
        """Enqueue on the mutation lane; must run inside the event loop."""
        handle = self.client.submit(mutation.args)
        self._handles[mutation.token] = handle
        return handle

    async def wait_mutation(self, mutation: Mutation) -> Completion:
        handle = self._handles.get(mutation.token) or self.submit_mutation(mutation)
        try:
            output = await handle.wait()
        except CommandError as exc:
            return Completion(mutation.token, error=exc)
        finally:
            self._handles.pop(mutation.token, None)
        return Completion(mutation.token, value=output)

    def cancel(self, request: CancelCall) -> bool:
        handle = self._handles.get(request.token)
        if handle is None:
            _log.debug("cancel: no call for token %d", request.token)
            return False
        return self.client.gateway.cancel(handle)
