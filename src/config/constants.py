from enum import Enum


class OrderStatus(str, Enum):
    RECEIVED = "received"
    READY = "ready"
    PICKED = "picked"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses that keep an order on its runner's plate
ACTIVE_ORDER_STATUSES = [
    OrderStatus.RECEIVED.value,
    OrderStatus.READY.value,
    OrderStatus.PICKED.value,
]

TERMINAL_ORDER_STATUSES = [
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
    OrderStatus.CANCELLED.value,
]

# Reaching either of these first means the runner finished the delivery
DELIVERY_DONE_STATUSES = [
    OrderStatus.DELIVERED.value,
    OrderStatus.COMPLETED.value,
]


class Collections(str, Enum):
    ORDERS = "orders"
    RUNNERS = "runners"
    RESTAURANTS = "restaurants"
    CUSTOMERS = "customers"
    USERS = "users"


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"


class SelectionPolicy(str, Enum):
    CONFLICT_AWARE = "conflict_aware"
    LEAST_BUSY = "least_busy"


class AssignmentTrigger(str, Enum):
    CREATED = "created"
    READY = "ready"


# Document fields holding references to other documents, and the collection
# each one points into
REFERENCE_FIELDS = {
    "runner": Collections.RUNNERS.value,
    "restaurant": Collections.RESTAURANTS.value,
    "customer": Collections.CUSTOMERS.value,
}

# Array fields whose items are references
REFERENCE_ARRAY_FIELDS = {
    "restaurants": Collections.RESTAURANTS.value,
    "orders": Collections.ORDERS.value,
}

MINUTES_PER_DAY = 24 * 60
