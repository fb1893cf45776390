from datetime import datetime
from typing import Any, Dict, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from medrec.models.enums import OrderPriority, OrderStatus, OrderType


# ---------------------------------------------------------
# ORDERS
# ---------------------------------------------------------
class OrderCreate(BaseModel):
    encounter_id: UUID
    test_name: str = Field(min_length=1)
    indication: Optional[str] = None
    priority: OrderPriority = OrderPriority.Routine


class OrderStatusUpdate(BaseModel):
    # completed is reached by entering a result, cancelled through /cancel
    status: Literal["collected", "in_progress"]
    collected_at: Optional[datetime] = None


class OrderRead(BaseModel):
    id: UUID
    encounter_id: UUID
    order_type: OrderType
    test_name: str
    indication: Optional[str] = None
    priority: OrderPriority
    status: OrderStatus
    ordering_clinician_id: UUID
    collected_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------
# RESULTS
# ---------------------------------------------------------
class ResultCreate(BaseModel):
    result_text: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    is_abnormal: bool = False
    critical_flag: bool = False


class ResultUpdate(BaseModel):
    result_text: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    is_abnormal: Optional[bool] = None
    critical_flag: Optional[bool] = None


class ResultAmend(ResultCreate):
    reason: str = Field(min_length=1)


class ResultRead(BaseModel):
    id: UUID
    order_id: UUID
    result_text: Optional[str] = None
    result_data: Optional[Dict[str, Any]] = None
    is_abnormal: bool
    critical_flag: bool
    entered_by: UUID
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    amends_id: Optional[UUID] = None
    amendment_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
