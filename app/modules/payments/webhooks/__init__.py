# -*- coding: utf-8 -*-
"""
backend/app/modules/payments/webhooks/__init__.py
"""

from .reconciler import WebhookReconciler, WebhookResult

__all__ = ["WebhookReconciler", "WebhookResult"]
