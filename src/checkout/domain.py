"""Checkout bounded context: checkout workflow, order placement and the
lifecycle of placed orders.

Orders and recurring payments are aggregates of this domain. Shipments are
entities inside the order aggregate.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
