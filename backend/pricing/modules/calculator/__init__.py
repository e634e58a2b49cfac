"""
Cálculo de líneas y totales de factura/carrito
"""

from .line_items import compute_line, effective_rate, is_line_exempt
from .totals import aggregate, default_policy

__all__ = ['compute_line', 'effective_rate', 'is_line_exempt', 'aggregate', 'default_policy']
