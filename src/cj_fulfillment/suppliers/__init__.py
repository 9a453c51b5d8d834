"""
Supplier gateways for CJ Fulfillment.
"""

from .base import SupplierClient
from .cj_client import CJDropshippingClient

__all__ = [
    "SupplierClient",
    "CJDropshippingClient",
]
