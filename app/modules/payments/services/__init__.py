# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/services/__init__.py
"""

from .notifications import LoggingPaymentFailureNotifier, PaymentFailureNotifier
from .retry_service import (
    MAX_ATTEMPTS,
    RETRY_SCHEDULE,
    PaymentRetryService,
    RetrySweepResult,
    next_retry_state,
)

__all__ = [
    "LoggingPaymentFailureNotifier",
    "PaymentFailureNotifier",
    "PaymentRetryService",
    "RetrySweepResult",
    "RETRY_SCHEDULE",
    "MAX_ATTEMPTS",
    "next_retry_state",
]
