"""
Motor de precios de facturas y POS: IVA por alícuota, exenciones,
descuentos, precios REF (USD -> VES) e IGTF.
"""

__version__ = "1.0.0"
