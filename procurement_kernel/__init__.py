"""
Procurement kernel: purchase order fulfillment and inventory reconciliation.

Typical use:

    from procurement_kernel.db.engine import init_engine_from_url, get_session
    from procurement_kernel.services import PurchasingService

    init_engine_from_url(settings.database_url)
    purchasing = PurchasingService(get_session())
"""

__version__ = "0.1.0"
