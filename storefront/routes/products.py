import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront.auth import require_admin
from storefront.dependencies import get_store, store_handle
from storefront.errors import StoreUnavailableError
from storefront.products import ProductService
from storefront.schemas import ProductFields, ProductUpdate
from storefront.store import Store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


@router.get("")
async def list_products(store: Store = Depends(store_handle)) -> list[dict]:
    try:
        await store.wait_ready()
        products = await ProductService(store).list_products()
    except StoreUnavailableError:
        logger.warning("Product listing degraded to empty: store unavailable")
        return []
    return [p.to_json() for p in sorted(products, key=lambda p: p.created_at, reverse=True)]


@router.get("/{product_id}")
async def get_product(product_id: str, store: Store = Depends(get_store)) -> dict:
    product = await ProductService(store).get(product_id)
    return product.to_json()


@router.post("")
async def create_product(
    body: ProductFields,
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> JSONResponse:
    product = await ProductService(store).create(body)
    return JSONResponse(status_code=201, content=product.to_json())


@router.put("")
async def update_product(
    body: ProductUpdate,
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> dict:
    product = await ProductService(store).update(body)
    return product.to_json()


@router.delete("")
async def delete_product(
    id: str = Query(..., min_length=1),
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> dict:
    await ProductService(store).delete(id)
    return {"success": True}
