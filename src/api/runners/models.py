from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RunnerDocument(BaseModel):
    """Runner as stored in the `runners` collection."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: Optional[str] = None
    phone: Optional[str] = None
    is_active: bool = Field(False, alias="isActive")
    active_orders: int = Field(0, alias="activeOrders")
    completed_orders: int = Field(0, alias="completedOrders")
    total_completed_orders: int = Field(0, alias="totalCompletedOrders")
    fcm_token: Optional[str] = Field(None, alias="fcmToken")
    orders: List[str] = []

    # Written by the assignment engine
    assignment_version: int = Field(0, alias="assignmentVersion")
    activation_handled: bool = Field(False, alias="activationHandled")

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "RunnerDocument":
        return cls.model_validate(document)


class CounterResetResult(BaseModel):
    counter: str
    runners_reset: int
    runner_ids: List[str] = []
