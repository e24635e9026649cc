import logging

from fastapi import APIRouter, Depends, Query

from storefront import analytics
from storefront.auth import issue_admin_token, require_admin, verify_admin_password
from storefront.config import settings
from storefront.dependencies import store_handle
from storefront.errors import AuthorizationError, StoreUnavailableError
from storefront.orders import OrderManager
from storefront.products import ProductService
from storefront.queries import filter_orders, parse_date
from storefront.schemas import AdminLogin
from storefront.store import Store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["admin"])


@router.post("/auth")
async def admin_login(body: AdminLogin) -> dict:
    if not verify_admin_password(body.password):
        raise AuthorizationError()
    return {
        "success": True,
        "token": issue_admin_token(),
        "expiresIn": settings.token_ttl_hours * 60 * 60 * 1000,
    }


@router.get("/verify")
async def verify(_admin: str = Depends(require_admin)) -> dict:
    return {"valid": True}


@router.get("/analytics")
async def order_analytics(
    period: str = Query(default="all", pattern=f"^({'|'.join(analytics.PERIODS)})$"),
    start_date: str | None = Query(default=None, alias="startDate"),
    end_date: str | None = Query(default=None, alias="endDate"),
    _admin: str = Depends(require_admin),
    store: Store = Depends(store_handle),
) -> dict:
    """
    Dashboard summary for a period (all/today/week/month) or an explicit
    startDate..endDate range. Empty summary when the store is down.
    """
    date_from, date_to = analytics.period_range(
        period, parse_date(start_date), parse_date(end_date, end_of_day=True)
    )
    try:
        await store.wait_ready()
        orders = await OrderManager(store).list_orders()
        products = await ProductService(store).list_products()
    except StoreUnavailableError:
        logger.warning("Analytics degraded to empty: store unavailable")
        return analytics.empty_summary()
    return analytics.summarize(filter_orders(orders, date_from=date_from, date_to=date_to), products)
