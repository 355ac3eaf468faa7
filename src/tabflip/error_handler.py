# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/tabflip/error_handler.py
"""
Error taxonomy for the tracker.

Four classes of failure exist:
1. Transient busy: a corrective host call failed because the user is in the
   middle of interacting with the host UI (e.g. dragging a tab). Retried.
2. Missing reference: an event names a container or item the tracker does
   not know. Repaired by one reconciliation pass, then dropped.
3. Persistence failure: a snapshot could not be loaded or saved. Logged;
   in-memory state stays authoritative.
4. Restore mismatch: a loaded snapshot disagrees with the live host. The
   snapshot is discarded wholesale.
"""

from dataclasses import dataclass
from typing import Optional

from .config import BUSY_ERROR_MARKER, HOST_BUSY_STATUS_CODES


class TrackerError(Exception):
    """Base class for all tracker errors."""


class HostError(TrackerError):
    """A call into the host failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class HostBusyError(HostError):
    """The host refused a mutation because the user is mid-interaction."""


class MissingReferenceError(TrackerError):
    """An event referenced a container or item that is not tracked."""


class MalformedEventError(MissingReferenceError):
    """A host payload failed validation and cannot be dispatched."""


class PersistenceError(TrackerError):
    """Loading or saving the tracking snapshot failed."""


@dataclass
class ClassifiedError:
    """Result of classifying an exception raised by a host call."""

    error_type: str
    original_exception: Exception
    status_code: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.error_type == "transient_busy"

    def __str__(self) -> str:
        return f"{self.error_type}: {self.original_exception}"


def is_busy_message(message: Optional[str]) -> bool:
    if not message:
        return False
    return BUSY_ERROR_MARKER in message.lower()


def classify_host_error(exc: Exception) -> ClassifiedError:
    """
    Classify an exception raised by a host-mutating call.

    A host error whose message carries the busy marker, or whose status code
    is one of the busy codes, is transient even if it was not raised as a
    HostBusyError.
    """
    if isinstance(exc, HostBusyError):
        return ClassifiedError("transient_busy", exc, exc.status_code)

    if isinstance(exc, MissingReferenceError):
        return ClassifiedError("missing_reference", exc)

    if isinstance(exc, HostError):
        if exc.status_code in HOST_BUSY_STATUS_CODES or is_busy_message(exc.message):
            return ClassifiedError("transient_busy", exc, exc.status_code)
        if exc.status_code == 404:
            return ClassifiedError("missing_reference", exc, exc.status_code)
        return ClassifiedError("host_error", exc, exc.status_code)

    if is_busy_message(str(exc)):
        return ClassifiedError("transient_busy", exc)

    return ClassifiedError("unknown", exc)
