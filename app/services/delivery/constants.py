"""
Webhook Delivery Constants.

Module: constants.py
Contains configuration defaults and outcome names for the delivery worker.
"""

from app.config.constants import (
    DEFAULT_DELIVERY_BATCH_SIZE,
    DEFAULT_MAX_RETRIES,
    RESPONSE_BODY_MAX_LENGTH,
)

# Exponential backoff: 2min, 4min, 8min, 16min, 32min (capped at 1h)
DEFAULT_BASE_DELAY_SECONDS = 60
DEFAULT_MAX_DELAY_SECONDS = 3600

DEFAULT_WEBHOOK_TIMEOUT_SECONDS = 10.0
DEFAULT_STALE_AFTER_SECONDS = 300

MAX_RETRIES = DEFAULT_MAX_RETRIES
BATCH_SIZE = DEFAULT_DELIVERY_BATCH_SIZE
BODY_MAX_LENGTH = RESPONSE_BODY_MAX_LENGTH

# Per-event outcomes
DELIVERED = "delivered"
RETRIED = "retried"
FAILED = "failed"
DEFERRED = "deferred"
SKIPPED = "skipped"
ERRORS = "errors"

# Attempt error recorded for a claim whose worker never reported back
STALE_CLAIM_ERROR = "Abandoned in PROCESSING (worker stopped before recording an outcome)"
