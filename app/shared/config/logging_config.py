# -*- coding: utf-8 -*-
"""
backend/app/shared/config/logging_config.py

Logging de consola de Clarity: texto plano en desarrollo, JSON
(python-json-logger) en producción. Los mensajes siguen la convención
`event_key campo=valor`, así que el formato JSON solo agrega metadatos.

Autor: Clarity
Fecha: 2026-09-02
"""

import logging.config
from typing import Literal

# En INFO registran cada request a Stripe/agentes y cada ejecución del sweep
QUIET_LOGGERS = ("apscheduler", "httpx", "stripe")


def setup_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO",
    fmt: Literal["plain", "pretty", "json"] = "plain",
) -> None:
    """
    Configura el root logger con un único handler a stdout.

    "pretty" se acepta por compatibilidad con LOG_FORMAT y equivale a plain.
    """
    if fmt == "json":
        formatter = {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
        }
    else:
        formatter = {"format": "%(asctime)s %(levelname)s [%(name)s]: %(message)s"}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"console": formatter},
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "stream": "ext://sys.stdout",
                }
            },
            "root": {"handlers": ["console"], "level": level.upper()},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )


__all__ = ["setup_logging", "QUIET_LOGGERS"]
# Fin del archivo backend/app/shared/config/logging_config.py
