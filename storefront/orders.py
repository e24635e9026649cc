"""
Order entity manager: the only writer of order:<id> records.

Create: read product -> check stock -> allocate number -> decrement stock -> write order.
Update: one path for admin and delivery callers; the role decides which
fields may change and which transitions the state machine allows.
Every accepted status change appends exactly one history entry.
"""
import logging

from storefront import order_state
from storefront.errors import NotFoundError, StoreUnavailableError, ValidationError
from storefront.inventory import check_stock, release_stock, reserve_stock
from storefront.metrics import (
    order_status_changes_total,
    order_transitions_rejected_total,
    orders_created_total,
    orders_deleted_total,
)
from storefront.models import HistoryEntry, Order, Product, utcnow
from storefront.order_numbers import generate_order_number
from storefront.order_state import ADMIN, DELIVERY, SYSTEM
from storefront.schemas import OrderCreate
from storefront.store import ORDERS_KEY, Store, order_key, product_key

logger = logging.getLogger(__name__)

ORDER_CREATED_NOTE = "Order created"
ASSIGNMENT_NOTE = "تم إسناد الطلب إلى مندوب التوصيل"
DELIVERY_UPDATE_NOTE = "Status updated by delivery man"

ADMIN_FIELDS = frozenset({"status", "delivery_man_id", "shipping_price", "payment_received", "notes"})
DELIVERY_FIELDS = frozenset({"status", "shipping_price", "payment_received"})


def append_history(order: Order, status: str, changed_by: str, notes: str = "") -> HistoryEntry:
    entry = HistoryEntry(status=status, changed_by=changed_by, notes=notes)
    order.status_history.append(entry)
    return entry


def status_change_note(current_status: str, new_status: str, changes: dict) -> str:
    notes = (changes.get("notes") or "").strip()
    if notes:
        return notes
    if order_state.is_assignment(current_status, new_status, changes.get("delivery_man_id")):
        return ASSIGNMENT_NOTE
    return f"Status changed to {order_state.status_label(new_status)}"


class OrderManager:
    def __init__(self, store: Store):
        self.store = store

    async def get(self, order_id: str) -> Order:
        data = await self.store.get_json(order_key(order_id))
        if data is None:
            raise NotFoundError("Order not found", id=order_id)
        return Order.model_validate(data)

    async def list_orders(self, delivery_man_id: str | None = None) -> list[Order]:
        ids = await self.store.smembers(ORDERS_KEY)
        orders = Order.load_many(await self.store.get_many_json([order_key(i) for i in ids]))
        if delivery_man_id is not None:
            orders = [o for o in orders if o.delivery_man_id == delivery_man_id]
        return orders

    async def create(self, data: OrderCreate) -> Order:
        product_data = await self.store.get_json(product_key(data.product_id))
        if product_data is None:
            raise NotFoundError("Product not found", productId=data.product_id)
        product = Product.model_validate(product_data)

        check_stock(product, data.quantity)
        order_number = await generate_order_number(self.store)
        await reserve_stock(self.store, product, data.quantity)

        order = Order(
            id=order_number,
            order_number=order_number,
            product_id=data.product_id,
            customer_name=data.customer_name,
            customer_phone=data.customer_phone,
            customer_address=data.customer_address,
            quantity=data.quantity,
            notes=data.notes,
        )
        append_history(order, "pending", SYSTEM, ORDER_CREATED_NOTE)
        try:
            await self.store.set_json(order_key(order.id), order.to_json())
            await self.store.sadd(ORDERS_KEY, order.id)
        except StoreUnavailableError:
            await self._undo_create(order, product)
            raise

        orders_created_total.inc()
        logger.info("Created order %s for product %s (quantity=%d)", order.id, product.id, order.quantity)
        return order

    async def _undo_create(self, order: Order, product: Product) -> None:
        try:
            await self.store.delete(order_key(order.id))
            if product.stock is not None:
                await release_stock(self.store, product.id, order.quantity)
        except StoreUnavailableError:
            logger.exception("Could not roll back order %s; product %s stock may be short", order.id, product.id)

    async def update(self, order_id: str, changes: dict, role: str = ADMIN, actor: str | None = None) -> Order:
        """
        Apply `changes` (snake_case, only the fields the caller supplied).
        admin: status, delivery_man_id, shipping_price, payment_received, notes.
        delivery: status, shipping_price, payment_received; `actor` is the worker id.
        """
        allowed = DELIVERY_FIELDS if role == DELIVERY else ADMIN_FIELDS
        unexpected = set(changes) - allowed
        if unexpected:
            raise ValidationError(f"Fields not updatable by {role}: {', '.join(sorted(unexpected))}")
        if role == DELIVERY and not actor:
            raise ValidationError("Delivery updates require a delivery man id")

        order = await self.get(order_id)
        current_status = order.status
        if role == DELIVERY:
            new_status = changes.get("status") or current_status
        else:
            new_status = order_state.derive_target_status(
                current_status, changes.get("status"), changes.get("delivery_man_id")
            )

        self._check_transition(order, current_status, new_status, role)

        updated = order.model_copy(deep=True)
        updated.status = new_status
        updated.updated_at = utcnow()
        for field in ("shipping_price", "payment_received"):
            if field in changes:
                setattr(updated, field, changes[field])

        if role == DELIVERY:
            updated.delivery_man_id = actor
            updated.updated_by = actor
            changed_by = actor
            note = DELIVERY_UPDATE_NOTE
        else:
            if "delivery_man_id" in changes:
                updated.delivery_man_id = changes["delivery_man_id"] or None
            if "notes" in changes:
                updated.notes = (changes["notes"] or "").strip()
            changed_by = actor or ADMIN
            note = status_change_note(current_status, new_status, changes)

        if new_status != current_status:
            append_history(updated, new_status, changed_by, note)
            order_status_changes_total.labels(from_status=current_status, to_status=new_status, role=role).inc()

        await self.store.set_json(order_key(order_id), updated.to_json())
        logger.info("Order %s updated by %s (%s): %s -> %s", order_id, changed_by, role, current_status, new_status)
        return updated

    def _check_transition(self, order: Order, current_status: str, new_status: str, role: str) -> None:
        if new_status not in order_state.ORDER_STATUSES:
            raise ValidationError(
                f"Invalid status. Valid statuses: {', '.join(order_state.ORDER_STATUSES)}",
                status=new_status,
                validStatuses=list(order_state.ORDER_STATUSES),
            )
        if new_status != current_status and not order_state.is_valid_transition(current_status, new_status, role):
            order_transitions_rejected_total.labels(
                current_status=current_status, attempted_status=new_status, role=role
            ).inc()
            logger.warning("Rejected %s transition for order %s: %s -> %s", role, order.id, current_status, new_status)
            raise ValidationError(
                f"Invalid status transition from {current_status} to {new_status}",
                currentStatus=current_status,
                requestedStatus=new_status,
            )
        if role == DELIVERY and new_status not in order_state.DELIVERY_CHAIN:
            raise ValidationError(
                "Invalid status for delivery man",
                status=new_status,
                validStatuses=list(order_state.DELIVERY_CHAIN),
            )

    async def delete(self, order_id: str) -> None:
        if not await self.store.exists(order_key(order_id)):
            raise NotFoundError("Order not found", id=order_id)
        await self.store.delete(order_key(order_id))
        await self.store.srem(ORDERS_KEY, order_id)
        orders_deleted_total.inc()
        logger.info("Deleted order %s", order_id)
