"""
Sistema REF: conversión USD -> moneda local, IGTF y tasas BCV
"""

from .igtf import IGTFPolicy
from .converter import convert, convert_amount, convert_items, reference_lines

__all__ = ['IGTFPolicy', 'convert', 'convert_amount', 'convert_items', 'reference_lines']
