# app/shared/__init__.py
"""
Infraestructura compartida de Clarity: configuración, base de datos,
scheduler, métricas y autenticación de servicio interno.

No inicializa settings en import-time para evitar efectos colaterales
durante la recolección de tests.
"""
# fin del archivo
