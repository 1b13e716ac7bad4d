# src/taskquest/errors.py

from __future__ import annotations


class TaskQuestError(Exception):
    """Base class for application errors."""


class StoreUnavailable(TaskQuestError):
    """
    Backing store is unreachable or failed while handling a request.

    The operation is aborted as a whole; callers must not assume anything was written.
    The underlying exception (sqlite3 / Notion / HTTP) is chained as __cause__.
    """


class InvalidFilterError(TaskQuestError, ValueError):
    """Loosely-typed filter/sort parameters could not be converted into a FilterSortSpec."""


class ConfigError(TaskQuestError):
    """Settings are inconsistent (unknown backend, missing Notion credentials, ...)."""
