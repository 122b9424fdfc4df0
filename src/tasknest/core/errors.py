# src/tasknest/core/errors.py

"""
Error taxonomy.

None of these are meant to reach the caller of the repository or the gateway:
they are raised at the edges (remote store, model client, payload decoding)
and turned into a fallback value one level up.
"""

from __future__ import annotations


class TaskNestError(Exception):
    """Base class for tasknest errors."""


class StoreUnreachable(TaskNestError):
    """The remote store could not be initialized or a call to it failed."""


class RecordDecodeError(TaskNestError, ValueError):
    """A stored record does not have the expected shape."""


class EnrichmentUnavailable(TaskNestError):
    """The AI gateway has no usable model client."""


class EnrichmentMalformed(TaskNestError, ValueError):
    """The model answered, but no usable structured payload could be extracted."""
