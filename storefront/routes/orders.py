import logging

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse

from storefront import order_state
from storefront.auth import require_admin
from storefront.dependencies import get_store, store_handle
from storefront.errors import StoreUnavailableError
from storefront.orders import OrderManager
from storefront.queries import SORT_KEYS, filter_orders, parse_date, sort_orders
from storefront.schemas import AdminOrderUpdate, OrderCreate
from storefront.store import Store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("")
async def list_orders(
    search: str | None = None,
    status: str | None = None,
    date_from: str | None = Query(default=None, alias="dateFrom"),
    date_to: str | None = Query(default=None, alias="dateTo"),
    sort: str | None = Query(default=None, description=f"One of {', '.join(SORT_KEYS)}"),
    _admin: str = Depends(require_admin),
    store: Store = Depends(store_handle),
) -> list[dict]:
    """All orders, filtered and sorted (newest first by default). Empty list when the store is down."""
    start = parse_date(date_from)
    end = parse_date(date_to, end_of_day=True)
    try:
        await store.wait_ready()
        orders = await OrderManager(store).list_orders()
    except StoreUnavailableError:
        logger.warning("Order listing degraded to empty: store unavailable")
        return []
    orders = sort_orders(filter_orders(orders, search, status, start, end), sort)
    return [o.to_json() for o in orders]


@router.get("/statuses")
async def list_statuses() -> list[dict]:
    return [
        {
            "status": s,
            "label": order_state.STATUS_LABELS[s],
            "color": order_state.STATUS_COLORS[s],
            "terminal": s in order_state.TERMINAL_STATUSES,
        }
        for s in order_state.ORDER_STATUSES
    ]


@router.post("")
async def create_order(body: OrderCreate, store: Store = Depends(get_store)) -> JSONResponse:
    order = await OrderManager(store).create(body)
    return JSONResponse(status_code=201, content=order.to_json())


@router.put("")
async def update_order(
    body: AdminOrderUpdate,
    x_user_id: str | None = Header(default=None),
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> dict:
    changes = body.model_dump(exclude_unset=True, exclude={"id"})
    order = await OrderManager(store).update(body.id, changes, role=order_state.ADMIN, actor=x_user_id)
    return order.to_json()


@router.delete("")
async def delete_order(
    id: str = Query(..., min_length=1),
    _admin: str = Depends(require_admin),
    store: Store = Depends(get_store),
) -> dict:
    await OrderManager(store).delete(id)
    return {"success": True}
