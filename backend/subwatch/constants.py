"""
Application constants.

Values that are shared between services live here so that the same number
is never spelled out in two places.
"""

# =============================================================================
# PAGINATION
# =============================================================================

# Subscriptions shown per page in the presentation layer
SUBSCRIPTIONS_PAGE_SIZE = 6

# =============================================================================
# SCHEDULING
# =============================================================================

# Refresh intervals are configured in minutes; timers run on seconds.
# Only subwatch.services.timers converts between the two.
SECONDS_PER_MINUTE = 60

# Schemes that make a subscription URL eligible for any refresh.
# Anything else (manually pasted node lists, share links) is inert.
REMOTE_URL_SCHEMES = ("http://", "https://")

# =============================================================================
# HTTP CLIENT TIMEOUTS
# =============================================================================

# Subscription backend timeout (node count fetch, batch update, settings)
HTTP_CLIENT_TIMEOUT_SECONDS = 30

# Webhook timeout for notification delivery
WEBHOOK_TIMEOUT_SECONDS = 10

# =============================================================================
# NOTIFICATIONS
# =============================================================================

# Number of recent notifications kept in memory for the status API
NOTIFICATION_FEED_SIZE = 50

# Webhook delivery retry policy
WEBHOOK_MAX_RETRIES = 3
WEBHOOK_INITIAL_BACKOFF_SECONDS = 1.0
WEBHOOK_BACKOFF_MULTIPLIER = 2.0

# =============================================================================
# PERSISTENCE & BACKGROUND TASKS
# =============================================================================

# How often the dirty flag is checked and the collection written out
PERSISTENCE_FLUSH_INTERVAL_SECONDS = 5

# Background task health check interval
TASK_MONITOR_CHECK_INTERVAL_SECONDS = 60

# Upper bound for waiting on in-flight refreshes during shutdown
SHUTDOWN_DRAIN_TIMEOUT_SECONDS = 15

# SQLite busy timeout - wait for locks before failing
SQLITE_BUSY_TIMEOUT_MS = 5000
