"""Shared constants for graphtrail."""

# History ledger
DEFAULT_MAX_HISTORY_SIZE = 100
BUSY_POLICIES = ("queue", "reject")
DEFAULT_BUSY_POLICY = "queue"

# Environment variables read by settings.load_settings()
ENV_MAX_HISTORY = "GRAPHTRAIL_MAX_HISTORY"
ENV_BUSY_POLICY = "GRAPHTRAIL_BUSY_POLICY"

# Default entity type when the caller gives none
DEFAULT_ENTITY_TYPE = "entity"

# Time constants for relative formatting
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400
SECONDS_PER_WEEK = 604800
SECONDS_PER_MONTH = 2592000  # 30 days
SECONDS_PER_YEAR = 31536000  # 365 days
