"""
Operational constants for the settlement core.

Technical constants used across the application: retry configuration,
backoff timings and log sink policy.
"""

# =============================================================================
# RETRY CONFIGURATIONS
# =============================================================================

# Transaction conflict retries (optimistic version checks, unique races,
# database lock contention)
CONFLICT_MAX_RETRIES = 3

# Base backoff delay in seconds, doubled on every attempt plus jitter
CONFLICT_RETRY_BASE_DELAY = 0.1


# =============================================================================
# LOGGING
# =============================================================================

LOG_ROTATION = "1 day"
LOG_RETENTION = "7 days"
