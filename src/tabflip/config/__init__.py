# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .defaults import (
    SNAPSHOT_MAX_AGE_SECONDS,
    SNAPSHOT_SCHEMA_VERSION,
    DEFAULT_STATE_FILE_NAME,
    DEFAULT_RECONCILE_INTERVAL,
    DEFAULT_DORMANCY_THRESHOLD_MS,
    REACTIVATION_RECONCILE_DELAY,
    CORRECTIVE_MAX_RETRIES,
    CORRECTIVE_RETRY_DELAY,
    BUSY_ERROR_MARKER,
    DEFAULT_HOST_URL,
    HOST_REQUEST_TIMEOUT,
    HOST_BUSY_STATUS_CODES,
)

__all__ = [
    "SNAPSHOT_MAX_AGE_SECONDS",
    "SNAPSHOT_SCHEMA_VERSION",
    "DEFAULT_STATE_FILE_NAME",
    "DEFAULT_RECONCILE_INTERVAL",
    "DEFAULT_DORMANCY_THRESHOLD_MS",
    "REACTIVATION_RECONCILE_DELAY",
    "CORRECTIVE_MAX_RETRIES",
    "CORRECTIVE_RETRY_DELAY",
    "BUSY_ERROR_MARKER",
    "DEFAULT_HOST_URL",
    "HOST_REQUEST_TIMEOUT",
    "HOST_BUSY_STATUS_CODES",
]
