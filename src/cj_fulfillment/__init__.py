"""
CJ Fulfillment

Fulfillment core for a dropshipping storefront backed by CJ Dropshipping.
Talks to the CJ API v2.0 for catalog, freight, order and tracking data,
places paid shop orders with CJ and keeps local order status in step with
carrier tracking.
"""

__version__ = "1.0.0"
__author__ = "CJ Fulfillment Team"
