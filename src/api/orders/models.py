from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from src.config.constants import (
    ACTIVE_ORDER_STATUSES,
    TERMINAL_ORDER_STATUSES,
    OrderStatus,
)


class OrderDocument(BaseModel):
    """Order as stored in the `orders` collection. References are document ids."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    order_status: OrderStatus = Field(OrderStatus.RECEIVED, alias="orderStatus")
    delivery_time: Optional[str] = Field(None, alias="deliveryTime")
    restaurant: Optional[str] = None
    customer: Optional[str] = None
    runner: Optional[str] = None
    waiting_for_runner: bool = Field(False, alias="waitingForRunner")
    order_num: Optional[Union[int, str]] = Field(None, alias="orderNum")
    pickup_code: Optional[Union[int, str]] = Field(None, alias="pickupCode")

    # Idempotency markers written by the assignment engine
    active_counted: bool = Field(False, alias="activeCounted")
    runner_released: bool = Field(False, alias="runnerReleased")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "OrderDocument":
        return cls.model_validate(document)

    @property
    def is_terminal(self) -> bool:
        return self.order_status.value in TERMINAL_ORDER_STATUSES

    @property
    def is_active(self) -> bool:
        return self.order_status.value in ACTIVE_ORDER_STATUSES


class RestaurantDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    branch: Optional[str] = None


class CustomerDocument(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    mobile: Optional[str] = None


class RestaurantUserDocument(BaseModel):
    """Restaurant staff account that receives new-order pushes."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    restaurants: List[str] = []
    fcm_token: Optional[str] = Field(None, alias="fcmToken")


class AssignmentOutcome(BaseModel):
    """Result of one assignment attempt for an order."""

    order_id: str
    runner_id: Optional[str] = None
    waiting: bool = False
    skipped_reason: Optional[str] = None
    attempts: int = 0
