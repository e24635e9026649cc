"""
Order lifecycle state machine. Valid transitions enforce business rules.
"""

ADMIN = "admin"
DELIVERY = "delivery"
SYSTEM = "system"

ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "assigned",
    "preparing",
    "in_transit",
    "delivered",
    "completed",
    "cancelled",
    "on_hold",
    "returned",
    "refunded",
)

TERMINAL_STATUSES = frozenset({"completed", "cancelled", "refunded"})

# Current status -> allowed next status (admin and system)
VALID_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"assigned", "cancelled", "on_hold"}),
    "assigned": frozenset({"preparing", "cancelled", "on_hold"}),
    "preparing": frozenset({"in_transit", "cancelled", "on_hold"}),
    "in_transit": frozenset({"delivered", "cancelled", "on_hold"}),
    "delivered": frozenset({"completed", "returned", "on_hold"}),
    "on_hold": frozenset({"pending", "assigned", "preparing", "in_transit", "cancelled"}),
    "returned": frozenset({"refunded", "cancelled"}),
    "refunded": frozenset(),  # terminal
    "completed": frozenset(),  # terminal
    "cancelled": frozenset(),  # terminal
}

# Delivery workers may only move one step forward along this chain
DELIVERY_CHAIN: tuple[str, ...] = ("assigned", "preparing", "in_transit", "delivered")

STATUS_LABELS = {
    "pending": "قيد الانتظار",
    "assigned": "مُسند",
    "preparing": "قيد التحضير",
    "in_transit": "قيد التوصيل",
    "delivered": "تم التوصيل",
    "completed": "مكتمل",
    "cancelled": "ملغي",
    "on_hold": "معلق",
    "returned": "مرتجع",
    "refunded": "مسترد",
}

STATUS_COLORS = {
    "pending": "warning",
    "assigned": "info",
    "preparing": "primary",
    "in_transit": "purple",
    "delivered": "success",
    "completed": "success",
    "cancelled": "danger",
    "on_hold": "secondary",
    "returned": "warning",
    "refunded": "danger",
}


def status_label(status: str) -> str:
    return STATUS_LABELS.get(status, status)


def _is_valid_delivery_step(current_status: str, new_status: str) -> bool:
    if current_status not in DELIVERY_CHAIN or new_status not in DELIVERY_CHAIN:
        return False
    return DELIVERY_CHAIN.index(new_status) == DELIVERY_CHAIN.index(current_status) + 1


def is_valid_transition(current_status: str, new_status: str, role: str = ADMIN) -> bool:
    """True if `role` may move an order from current_status to new_status. Never raises."""
    if current_status not in VALID_TRANSITIONS or new_status not in VALID_TRANSITIONS:
        return False
    if current_status in TERMINAL_STATUSES:
        return False

    if role == DELIVERY:
        return _is_valid_delivery_step(current_status, new_status)
    if role not in (ADMIN, SYSTEM):
        return False

    if role == ADMIN:
        if new_status == "cancelled":
            return True
        if current_status == "delivered" and new_status == "completed":
            return True

    return new_status in VALID_TRANSITIONS[current_status]


def allowed_transitions(current_status: str, role: str = ADMIN) -> list[str]:
    return [s for s in ORDER_STATUSES if is_valid_transition(current_status, s, role)]


def derive_target_status(
    current_status: str,
    requested_status: str | None,
    delivery_man_id: str | None,
) -> str:
    """
    Effective target of an admin update. Assigning a worker to a pending order
    without naming a status moves it to `assigned`.
    """
    if requested_status:
        return requested_status
    if delivery_man_id and current_status == "pending":
        return "assigned"
    return current_status


def is_assignment(current_status: str, new_status: str, delivery_man_id: str | None) -> bool:
    return bool(delivery_man_id) and current_status == "pending" and new_status == "assigned"
