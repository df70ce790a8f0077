"""Global constants for proofwatch.

Centralizes the fixed numbers shared between the store, the classifier
and the report renderer.
"""

# =============================================================================
# Retry budget
# =============================================================================

MAX_ATTEMPTS = 10
"""Attempts after which a failed or in-progress job counts as stuck."""

# =============================================================================
# Circuit numbering
# =============================================================================

LEGACY_EIP4844_CIRCUIT_ID = 18
"""Raw circuit id stored by older recursive rounds for the EIP-4844 circuit."""

EIP4844_CIRCUIT_ID = 255
"""Logical id of the EIP-4844 repack circuit."""

RECURSIVE_CIRCUIT_ID_OFFSET = 2
"""Offset between stored recursive-round circuit ids and base-layer ids."""

# =============================================================================
# Duration formatting
# =============================================================================

SECONDS_PER_MINUTE = 60
"""Seconds in one minute, for duration formatting."""

SECONDS_PER_HOUR = 3600
"""Seconds in one hour, for duration formatting."""
