# -*- coding: utf-8 -*-
"""
backend/app/__init__.py

Paquete principal del backend Clarity: ledger de créditos, pagos con
reintentos y generación por etapas.

Autor: Clarity
Fecha: 2026-09-02
"""

# Fin del archivo backend/app/__init__.py
