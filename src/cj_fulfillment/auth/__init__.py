"""
CJ Dropshipping authentication for CJ Fulfillment.
"""

from .token_manager import TokenManager, get_token_manager, reset_token_manager

__all__ = [
    "TokenManager",
    "get_token_manager",
    "reset_token_manager",
]
