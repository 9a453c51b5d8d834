"""
Abstract base class for supplier gateways.

Provides a unified interface for dropshipping suppliers. Every operation
returns an ``OperationResult`` and never raises.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from cj_fulfillment.core.models import OperationResult, OrderLineItem, SupplierOrderRequest


class SupplierClient(ABC):
    """
    Abstract supplier gateway interface.

    All supplier integrations must implement this interface so services can
    place and track orders without knowing the supplier's wire format.
    """

    @abstractmethod
    async def search_products(self, keywords: Optional[str] = None,
                              category_id: Optional[str] = None,
                              page: int = 1, page_size: int = 20) -> OperationResult:
        """
        Search the supplier catalog.

        Returns:
            Result whose ``data`` is a list of ``SupplierProduct`` and
            ``total`` the supplier's total match count
        """
        pass

    @abstractmethod
    async def search_my_products(self, keywords: Optional[str] = None,
                                 category_id: Optional[str] = None,
                                 page: int = 1, page_size: int = 20) -> OperationResult:
        """Search products already added to the supplier account."""
        pass

    @abstractmethod
    async def get_product(self, product_id: str) -> OperationResult:
        """Fetch one product as a ``SupplierProduct``."""
        pass

    @abstractmethod
    async def get_product_variants(self, product_id: str) -> OperationResult:
        """Fetch a product's variants as ``ProductVariant`` items."""
        pass

    @abstractmethod
    async def get_categories(self) -> OperationResult:
        """Fetch the supplier's leaf categories."""
        pass

    @abstractmethod
    async def get_shipping_rates(self, product_id: str, country_code: str,
                                 variant_id: Optional[str] = None, quantity: int = 1,
                                 weight_kg: float = 0.0) -> OperationResult:
        """Quote freight for one product/variant, falling back to a weight-based quote."""
        pass

    @abstractmethod
    async def get_order_shipping_rates(self, country_code: str, line_items: List[OrderLineItem],
                                       total_weight_kg: Optional[float] = None) -> OperationResult:
        """Quote freight for a whole order."""
        pass

    @abstractmethod
    async def create_order(self, request: SupplierOrderRequest) -> OperationResult:
        """Create an order at the supplier."""
        pass

    @abstractmethod
    async def get_order_status(self, order_id: str) -> OperationResult:
        """Fetch the supplier's status for an order."""
        pass

    @abstractmethod
    async def get_order_detail(self, order_id: str) -> OperationResult:
        """Fetch order detail including tracking assignment."""
        pass

    @abstractmethod
    async def get_tracking(self, track_number: str) -> OperationResult:
        """Fetch tracking rows for a tracking number."""
        pass

    @abstractmethod
    async def confirm_order(self, order_id: str) -> OperationResult:
        """Acknowledge an order at the supplier; ``data`` is always None."""
        pass

    @property
    @abstractmethod
    def supplier_name(self) -> str:
        """Get supplier name."""
        pass
