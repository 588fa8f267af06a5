"""Correlation ids for log records.

Each thread, asyncio task or explicitly opened request scope gets its own
auto-incrementing id, exposed to formatters as ``%(ctxid)s`` by
``ContextIdFilter``.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_ids = itertools.count(1)
_context_id: ContextVar[int | None] = ContextVar("logdir_cleanup_context_id", default=None)


def _next_id() -> int:
    # next() on itertools.count is atomic under the GIL
    return next(_ids)


def get_or_create_context_id() -> int:
    """Return the id of the current context, assigning one on first use."""
    current = _context_id.get()
    if current is None:
        current = _next_id()
        _context_id.set(current)
    return current


@contextmanager
def new_context() -> Iterator[int]:
    """Give the enclosed block (e.g. one request) a fresh context id."""
    token = _context_id.set(_next_id())
    try:
        yield _context_id.get()
    finally:
        _context_id.reset(token)


class ContextIdFilter(logging.Filter):
    """Adds ``ctxid`` to every record passing through."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.ctxid = get_or_create_context_id()
        return True
