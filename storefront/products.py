import logging

import pydantic

from storefront.errors import NotFoundError, ValidationError
from storefront.models import Order, Product, utcnow
from storefront.schemas import ProductFields, ProductUpdate
from storefront.store import ORDERS_KEY, PRODUCTS_KEY, Store, order_key, product_key

logger = logging.getLogger(__name__)


def _validation_messages(error: pydantic.ValidationError) -> list[str]:
    return [f"{'.'.join(str(p) for p in e['loc']) or 'body'}: {e['msg']}" for e in error.errors()]


class ProductService:
    def __init__(self, store: Store):
        self.store = store

    async def get(self, product_id: str) -> Product:
        data = await self.store.get_json(product_key(product_id))
        if data is None:
            raise NotFoundError("Product not found", id=product_id)
        return Product.model_validate(data)

    async def list_products(self) -> list[Product]:
        ids = await self.store.smembers(PRODUCTS_KEY)
        return Product.load_many(await self.store.get_many_json([product_key(i) for i in ids]))

    async def create(self, fields: ProductFields) -> Product:
        product = Product(**fields.model_dump())
        await self.store.set_json(product_key(product.id), product.to_json())
        await self.store.sadd(PRODUCTS_KEY, product.id)
        logger.info("Created product %s (%s)", product.id, product.name)
        return product

    async def update(self, body: ProductUpdate) -> Product:
        product = await self.get(body.id)
        merged = product.model_dump(include=set(ProductFields.model_fields))
        merged.update(body.model_dump(exclude_unset=True, exclude={"id"}))
        try:
            fields = ProductFields.model_validate(merged)
        except pydantic.ValidationError as e:
            raise ValidationError("Validation failed", errors=_validation_messages(e))

        updated = product.model_copy(update={**fields.model_dump(), "updated_at": utcnow()})
        await self.store.set_json(product_key(updated.id), updated.to_json())
        logger.info("Updated product %s", updated.id)
        return updated

    async def delete(self, product_id: str) -> None:
        if not await self.store.exists(product_key(product_id)):
            raise NotFoundError("Product not found", id=product_id)
        order_ids = await self.store.smembers(ORDERS_KEY)
        for order in Order.load_many(await self.store.get_many_json([order_key(i) for i in order_ids])):
            if order.product_id == product_id:
                raise ValidationError("Cannot delete product with existing orders", id=product_id)
        await self.store.delete(product_key(product_id))
        await self.store.srem(PRODUCTS_KEY, product_id)
        logger.info("Deleted product %s", product_id)
