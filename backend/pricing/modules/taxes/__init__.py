"""
Alícuotas de IVA (SENIAT)
"""

from .aliquots import TaxAliquotResolver, get_resolver, resolve, EXEMPT_CODE

__all__ = ['TaxAliquotResolver', 'get_resolver', 'resolve', 'EXEMPT_CODE']
