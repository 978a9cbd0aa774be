from src.api.events.dispatcher import EventDispatcher
from src.api.notifications.service import NotificationService
from src.api.orders.services.assignment_service import AssignmentService
from src.config.constants import ChangeKind, Collections


def build_dispatcher(
    assignment: AssignmentService, notifications: NotificationService
) -> EventDispatcher:
    """Wire the default handler table. Assignment runs before notifications."""
    dispatcher = EventDispatcher()

    dispatcher.add_handler(Collections.ORDERS, ChangeKind.CREATED, assignment.handle_order_created)
    dispatcher.add_handler(Collections.ORDERS, ChangeKind.CREATED, notifications.handle_order_created)

    dispatcher.add_handler(Collections.ORDERS, ChangeKind.UPDATED, assignment.handle_order_updated)
    dispatcher.add_handler(Collections.ORDERS, ChangeKind.UPDATED, notifications.handle_order_updated)

    # A runner created with isActive set counts as an activation
    dispatcher.add_handler(Collections.RUNNERS, ChangeKind.CREATED, assignment.handle_runner_changed)
    dispatcher.add_handler(Collections.RUNNERS, ChangeKind.UPDATED, assignment.handle_runner_changed)

    return dispatcher
