"""
Couples Product.stock to order creation. Nothing else changes stock: cancelled,
returned and refunded orders are not restocked.

The check and the decrement are two separate store calls, so two concurrent
orders for the last units can both pass the check (oversell). Accepted at this scale.
"""
import logging

from storefront.errors import ValidationError
from storefront.metrics import orders_rejected_insufficient_stock_total
from storefront.models import Product
from storefront.store import Store, product_key

logger = logging.getLogger(__name__)


def check_stock(product: Product, quantity: int) -> None:
    if product.stock is None:
        return
    if product.stock < quantity:
        orders_rejected_insufficient_stock_total.inc()
        raise ValidationError(
            f"Insufficient stock. Available: {product.stock}, Requested: {quantity}",
            available=product.stock,
            requested=quantity,
        )


async def reserve_stock(store: Store, product: Product, quantity: int) -> Product:
    """Validate and decrement tracked stock. Returns the product as persisted."""
    check_stock(product, quantity)
    if product.stock is None:
        return product
    reserved = product.model_copy(update={"stock": product.stock - quantity})
    await store.set_json(product_key(product.id), reserved.to_json())
    logger.info("Reserved %d of product %s (stock %d -> %d)", quantity, product.id, product.stock, reserved.stock)
    return reserved


async def release_stock(store: Store, product_id: str, quantity: int) -> None:
    """Add `quantity` back to the product's current stock. Other fields are left as stored."""
    data = await store.get_json(product_key(product_id))
    if data is None:
        logger.warning("Cannot restore stock of product %s: product is gone", product_id)
        return
    product = Product.model_validate(data)
    if product.stock is None:
        return
    restored = product.model_copy(update={"stock": product.stock + quantity})
    await store.set_json(product_key(product_id), restored.to_json())
    logger.info("Restored %d of product %s (stock %d -> %d)", quantity, product_id, product.stock, restored.stock)
