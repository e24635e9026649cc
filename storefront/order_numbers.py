"""
Human-facing order numbers: ORD-<year>-<5 digits>, one counter per calendar year.
"""
import logging
import uuid
from datetime import datetime

from storefront.errors import StoreUnavailableError
from storefront.metrics import order_number_fallback_total
from storefront.models import utcnow
from storefront.store import Store, order_counter_key

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"


def format_order_number(year: int, counter: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{year}-{counter:05d}"


def fallback_order_number(now: datetime) -> str:
    """Timestamp + random suffix. Unique in practice, not sequential."""
    millis = int(now.timestamp() * 1000)
    return f"{ORDER_NUMBER_PREFIX}-{millis}-{uuid.uuid4().hex[:5].upper()}"


async def generate_order_number(store: Store, now: datetime | None = None) -> str:
    now = now or utcnow()
    try:
        counter = await store.incr(order_counter_key(now.year))
    except StoreUnavailableError:
        order_number_fallback_total.inc()
        number = fallback_order_number(now)
        logger.warning("Order counter unavailable, using fallback number %s", number)
        return number
    return format_order_number(now.year, counter)
