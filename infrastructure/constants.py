"""
Constants Module - Centralized configuration values
===================================================

PURPOSE: Single source of truth for defaults shared across the codebase
PATTERN: Modular constants organized by category
SCOPE: Application-wide configuration values
"""

# Time handling
DEFAULT_TIMEZONE = "America/Guatemala"
DATE_FORMAT = "%Y-%m-%d"

# Reservation bookkeeping
CHANGE_HISTORY_LIMIT = 50  # entries kept on each reservation
OPERATION_HISTORY_LIMIT = 50  # undo entries kept by the state manager
DEFAULT_ACTOR = "system"

# Slot search and suggestions
DEFAULT_SLOT_MIN_DAYS = 1
DEFAULT_SLOT_MAX_DAYS = 30
DEFAULT_SLOT_HORIZON_DAYS = 90
ALTERNATIVE_LOOKBEHIND_DAYS = 14
ALTERNATIVE_LOOKAHEAD_DAYS = 30
ALTERNATIVE_EXTRA_DAYS = 7
NEARBY_WINDOW_DAYS = 7
NEARBY_SLACK_DAYS = 2
SUGGESTION_LIMIT = 5
NEARBY_SLOT_LIMIT = 4

# Date validation defaults
DEFAULT_MIN_BOOKING_DAYS = 1
DEFAULT_MAX_BOOKING_DAYS = 30
DEFAULT_MIN_ADVANCE_DAYS = 0
DEFAULT_MAX_ADVANCE_DAYS = 365

# Offline queue
QUEUE_STORAGE_KEY = "offline_queue"
QUEUE_MAX_SIZE = 100
QUEUE_MAX_RETRIES = 3
QUEUE_ITEM_DELAY_SECONDS = 0.1
QUEUE_RETRY_DELAY_SECONDS = 1.0
