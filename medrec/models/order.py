# medrec/models/order.py

from sqlmodel import SQLModel, Field, Column
from sqlalchemy import DateTime, Text
from datetime import datetime
from typing import Optional, Dict, Any
import uuid

from medrec.models.audit import JSONType
from medrec.models.enums import OrderPriority, OrderStatus, OrderType, enum_column
from medrec.models.user import utc_now


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    encounter_id: uuid.UUID = Field(foreign_key="encounters.id", nullable=False, index=True)

    order_type: OrderType = Field(
        sa_column=Column(enum_column(OrderType, "order_type"), nullable=False, index=True)
    )
    test_name: str = Field(nullable=False)
    indication: Optional[str] = None

    priority: OrderPriority = Field(
        default=OrderPriority.Routine,
        sa_column=Column(enum_column(OrderPriority, "order_priority"), nullable=False)
    )
    status: OrderStatus = Field(
        default=OrderStatus.Pending,
        sa_column=Column(enum_column(OrderStatus, "order_status"), nullable=False, index=True)
    )

    # Ordering clinician; only they may cancel the order
    ordering_clinician_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)

    collected_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )


class Result(SQLModel, table=True):
    __tablename__ = "results"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    order_id: uuid.UUID = Field(foreign_key="orders.id", nullable=False, index=True)

    result_text: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    result_data: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSONType, nullable=True))
    is_abnormal: bool = Field(default=False)
    critical_flag: bool = Field(default=False)

    entered_by: uuid.UUID = Field(foreign_key="users.id", nullable=False)

    # Once approved_by is set the result is frozen; corrections are new amending results
    approved_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    approved_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    amends_id: Optional[uuid.UUID] = Field(default=None, foreign_key="results.id")
    amendment_reason: Optional[str] = None

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False)
    )
