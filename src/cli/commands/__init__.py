"""CLI commands."""

from . import (
    assign,
    end,
    init,
    messages,
    notes,
    send,
    serve,
    sessions,
    stats,
    transfer,
    watch,
)

__all__ = [
    "assign",
    "end",
    "init",
    "messages",
    "notes",
    "send",
    "serve",
    "sessions",
    "stats",
    "transfer",
    "watch",
]
