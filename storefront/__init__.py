"""
                Storefront Checkout

Checkout backend for a restaurant storefront: cart pricing, order
submission, payment hand-off and live reconciliation of the cart
against backend changes, with a hybrid Mock/Real collaborator layer.

Author: Storefront Team
Version: 1.0.0
License: MIT
"""

__version__ = "1.0.0"
__author__ = "Storefront Team"
