import logging

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront.auth import require_admin, require_delivery
from storefront.delivery import DeliveryService
from storefront.dependencies import get_store, store_handle
from storefront.errors import StoreUnavailableError
from storefront.order_state import DELIVERY
from storefront.orders import OrderManager
from storefront.products import ProductService
from storefront.queries import sort_orders
from storefront.schemas import DeliveryAuthRequest, DeliveryOrderUpdate
from storefront.store import Store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/delivery", tags=["delivery"])


@router.post("/auth")
async def delivery_auth(body: DeliveryAuthRequest, store: Store = Depends(get_store)) -> JSONResponse:
    """Signup (201) or login (200) for a delivery worker; returns a delivery token."""
    man, token = await DeliveryService(store).authenticate(body)
    return JSONResponse(
        status_code=201 if body.action == "signup" else 200,
        content={"success": True, "token": token, "deliveryMan": {"id": man.id, "name": man.name, "phone": man.phone}},
    )


@router.get("/list")
async def list_delivery_men(_admin: str = Depends(require_admin), store: Store = Depends(store_handle)) -> list[dict]:
    try:
        await store.wait_ready()
        men = await DeliveryService(store).list_delivery_men()
    except StoreUnavailableError:
        logger.warning("Delivery listing degraded to empty: store unavailable")
        return []
    return [m.public() for m in sorted(men, key=lambda m: m.created_at)]


@router.get("/info")
async def delivery_man_info(
    id: str = Query(..., min_length=1),
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> dict:
    man = await DeliveryService(store).get_by_id(id)
    return man.public()


@router.get("/orders")
async def my_orders(
    delivery_man_id: str = Depends(require_delivery),
    store: Store = Depends(store_handle),
) -> list[dict]:
    """Orders assigned to the caller, newest first, each with its product embedded."""
    try:
        await store.wait_ready()
        orders = await OrderManager(store).list_orders(delivery_man_id=delivery_man_id)
        products = {p.id: p for p in await ProductService(store).list_products()}
    except StoreUnavailableError:
        logger.warning("Delivery orders for %s degraded to empty: store unavailable", delivery_man_id)
        return []

    result = []
    for order in sort_orders(orders):
        data = order.to_json()
        if order.product_id in products:
            data["product"] = products[order.product_id].to_json()
        result.append(data)
    return result


@router.put("/orders")
async def update_my_order(
    body: DeliveryOrderUpdate,
    delivery_man_id: str = Depends(require_delivery),
    store: Store = Depends(get_store),
) -> dict:
    changes = body.model_dump(exclude_unset=True, exclude={"id"})
    order = await OrderManager(store).update(body.id, changes, role=DELIVERY, actor=delivery_man_id)
    return order.to_json()
