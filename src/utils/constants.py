"""
Constants for the SendIT parcel core.

This module defines system-wide constants:
- Application metadata
- Database file naming
- Environment variable names
- Lifecycle constants shared by several services
"""

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "SendIT Parcel Core"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "sendit.db"

# ============================================================================
# Environment Variables
# ============================================================================

ENV_PREFIX = "SENDIT_"

ENV_ENVIRONMENT = "SENDIT_ENV"
ENV_DB_TYPE = "SENDIT_DB_TYPE"
ENV_DB_TIMEOUT = "SENDIT_DB_TIMEOUT"
ENV_DATA_DIR = "SENDIT_DATA_DIR"
ENV_PRICING_CONFIG = "SENDIT_PRICING_CONFIG"
ENV_LOG_LEVEL = "SENDIT_LOG_LEVEL"
ENV_DRAFT_TTL_HOURS = "SENDIT_DRAFT_TTL_HOURS"
ENV_DATABASE_URL = "DATABASE_URL"

SUPPORTED_DB_TYPES = ("sqlite", "postgresql")

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_DB_TIMEOUT = 30
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_DRAFT_TTL_HOURS = 24

# Tracking numbers: "ST-" + 8 timestamp digits + 2 random digits
TRACKING_NUMBER_PREFIX = "ST-"
TRACKING_NUMBER_MAX_ATTEMPTS = 10

# PricingHistory step tags
PRICING_STEP_FINAL = "final_calculation"

# ============================================================================
# Validation Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Must be a valid number"
ERROR_INVALID_POSITIVE = "Must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Cannot be negative"
ERROR_INVALID_CHOICE = "Invalid value"
ERROR_INVALID_SECTION = "Must be an object"
