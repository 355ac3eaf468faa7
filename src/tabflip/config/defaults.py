# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Centralized defaults for the tabflip library.

This file contains all tunable default values for:
- Snapshot persistence (staleness, schema version)
- Reconciliation timing and dormancy detection
- Corrective action retries
- Host bridge timeouts

Environment variables can override some of these at runtime; the override
is documented next to each value.
"""

# =============================================================================
# PERSISTENCE DEFAULTS
# =============================================================================

# Snapshots older than this are discarded on load instead of trusted
SNAPSHOT_MAX_AGE_SECONDS: int = 24 * 60 * 60  # 24 hours

# Written into every persisted snapshot
SNAPSHOT_SCHEMA_VERSION: str = "3.0.3"

# Default file name for the persisted tracking state
DEFAULT_STATE_FILE_NAME: str = "tabflip_state.json"

# =============================================================================
# RECONCILIATION DEFAULTS
# =============================================================================

# Interval of the background reconciliation timer in seconds
# Override: TABFLIP_RECONCILE_INTERVAL=<seconds>
DEFAULT_RECONCILE_INTERVAL: int = 60

# A reactivation later than this since the last activation counts as dormancy
# Override: TABFLIP_DORMANCY_THRESHOLD_MS=<milliseconds>
DEFAULT_DORMANCY_THRESHOLD_MS: int = 5000

# Delay between a detected reactivation and the reconciliation it triggers,
# so pending host operations can settle first (seconds)
REACTIVATION_RECONCILE_DELAY: float = 0.1

# =============================================================================
# CORRECTIVE ACTION DEFAULTS
# =============================================================================

# Retries on the transient busy condition before giving up
CORRECTIVE_MAX_RETRIES: int = 3

# Fixed delay between retries in seconds
CORRECTIVE_RETRY_DELAY: float = 0.2

# Substring of a host error message that marks the transient busy condition
BUSY_ERROR_MARKER: str = "user may be dragging"

# =============================================================================
# HOST BRIDGE DEFAULTS
# =============================================================================

# Base URL of the host bridge
# Override: TABFLIP_HOST_URL=<url>
DEFAULT_HOST_URL: str = "http://127.0.0.1:8731"

# Timeout for a single host bridge request in seconds
# Override: TABFLIP_HOST_TIMEOUT=<seconds>
HOST_REQUEST_TIMEOUT: float = 5.0

# HTTP statuses the host bridge uses for the busy condition
HOST_BUSY_STATUS_CODES = (409, 423)
