# medrec/services/order_service.py

"""
Lab and radiology orders share one table and one workflow; `order_type`
keeps them apart.

Order:  pending -> collected -> in_progress -> completed
                \______________________________/-> cancelled
Result: entered -> approved (frozen). Corrections are new results that
        reference the approved one through `amends_id`.
"""

import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy import case, or_
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.core.exceptions import BadRequestError, NotFoundError, StateConflictError
from medrec.models.encounter import Encounter
from medrec.models.enums import OrderPriority, OrderStatus, OrderType
from medrec.models.order import Order, Result
from medrec.models.user import utc_now
from medrec.schemas.order import OrderCreate, OrderStatusUpdate, ResultAmend, ResultCreate, ResultUpdate
from medrec.services.encounter_service import ensure_open, get_encounter

TERMINAL_ORDER_STATES = {OrderStatus.Completed, OrderStatus.Cancelled}
OPEN_ORDER_STATES = {OrderStatus.Pending, OrderStatus.Collected, OrderStatus.InProgress}

# Allowed forward moves through /status
STATUS_TRANSITIONS = {
    OrderStatus.Pending: {OrderStatus.Collected, OrderStatus.InProgress},
    OrderStatus.Collected: {OrderStatus.InProgress},
    OrderStatus.InProgress: set(),
}


# ============================================================================
# ORDERS
# ============================================================================
async def get_order(session: AsyncSession, order_id: uuid.UUID, order_type: OrderType) -> Order:
    order = await session.get(Order, order_id)
    # A lab order id is not found under /radiology-orders and vice versa
    if not order or order.order_type != order_type:
        raise NotFoundError(f"{order_type.value.capitalize()} order not found")
    return order


async def list_orders(
    session: AsyncSession,
    order_type: OrderType,
    encounter_id: Optional[uuid.UUID] = None,
    status: Optional[OrderStatus] = None,
    limit: int = 50,
    offset: int = 0,
) -> List[Order]:
    query = (
        select(Order)
        .where(Order.order_type == order_type)
        .order_by(Order.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    if encounter_id:
        query = query.where(Order.encounter_id == encounter_id)
    if status:
        query = query.where(Order.status == status)

    result = await session.execute(query)
    return result.scalars().all()


# stat first, routine last
_PRIORITY_RANK = case(
    (Order.priority == OrderPriority.Stat, 0),
    (Order.priority == OrderPriority.Urgent, 1),
    else_=2,
)


async def list_pending_orders(session: AsyncSession, order_type: OrderType, limit: int = 100) -> List[Order]:
    """Worklist: orders not yet completed or cancelled, most urgent and oldest first."""
    query = (
        select(Order)
        .where(Order.order_type == order_type, Order.status.in_(list(OPEN_ORDER_STATES)))
        .order_by(_PRIORITY_RANK, Order.created_at.asc())
        .limit(limit)
    )
    result = await session.execute(query)
    return result.scalars().all()


async def list_patient_orders(session: AsyncSession, order_type: OrderType, patient_id: uuid.UUID) -> List[Order]:
    query = (
        select(Order)
        .join(Encounter, Encounter.id == Order.encounter_id)
        .where(Order.order_type == order_type, Encounter.patient_id == patient_id)
        .order_by(Order.created_at.desc())
    )
    result = await session.execute(query)
    return result.scalars().all()


async def create_order(
    session: AsyncSession,
    order_type: OrderType,
    data: OrderCreate,
    clinician_id: uuid.UUID,
) -> Order:
    encounter = await get_encounter(session, data.encounter_id)
    ensure_open(encounter)

    order = Order(
        **data.model_dump(),
        order_type=order_type,
        ordering_clinician_id=clinician_id,
    )
    session.add(order)
    await session.commit()
    await session.refresh(order)
    return order


def _ensure_active(order: Order) -> None:
    if order.status in TERMINAL_ORDER_STATES:
        raise StateConflictError(f"Order is already {order.status.value}", state=order.status.value)


async def update_order_status(session: AsyncSession, order: Order, data: OrderStatusUpdate) -> Order:
    _ensure_active(order)

    target = OrderStatus(data.status)
    if target not in STATUS_TRANSITIONS.get(order.status, set()):
        raise BadRequestError(
            f"Cannot move order from {order.status.value} to {target.value}",
            code="INVALID_TRANSITION",
        )

    order.status = target
    if target == OrderStatus.Collected:
        order.collected_at = data.collected_at or utc_now()

    order.updated_at = utc_now()
    session.add(order)
    await session.commit()
    await session.refresh(order)
    return order


async def cancel_order(session: AsyncSession, order: Order) -> Order:
    _ensure_active(order)

    order.status = OrderStatus.Cancelled
    order.updated_at = utc_now()
    session.add(order)
    await session.commit()
    await session.refresh(order)
    return order


# ============================================================================
# RESULTS
# ============================================================================
async def get_result(session: AsyncSession, order: Order, result_id: uuid.UUID) -> Result:
    result = await session.get(Result, result_id)
    if not result or result.order_id != order.id:
        raise NotFoundError("Result not found")
    return result


async def list_results(session: AsyncSession, order: Order) -> List[Result]:
    rows = await session.execute(
        select(Result).where(Result.order_id == order.id).order_by(Result.created_at.asc())
    )
    return rows.scalars().all()


async def create_result(session: AsyncSession, order: Order, data: ResultCreate, entered_by: uuid.UUID) -> Result:
    if order.status == OrderStatus.Cancelled:
        raise StateConflictError("Order is cancelled", state=order.status.value)

    result = Result(**data.model_dump(), order_id=order.id, entered_by=entered_by)

    order.status = OrderStatus.Completed
    order.updated_at = utc_now()

    session.add(result)
    session.add(order)
    await session.commit()
    await session.refresh(result)
    return result


def _ensure_not_approved(result: Result) -> None:
    if result.approved_by is not None:
        raise StateConflictError("Result is already approved", state="approved")


async def update_result(session: AsyncSession, result: Result, data: ResultUpdate) -> Result:
    _ensure_not_approved(result)

    for field, value in data.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(result, field, value)

    result.updated_at = utc_now()
    session.add(result)
    await session.commit()
    await session.refresh(result)
    return result


async def approve_result(session: AsyncSession, result: Result, approver_id: uuid.UUID) -> Result:
    _ensure_not_approved(result)

    result.approved_by = approver_id
    result.approved_at = utc_now()
    result.updated_at = result.approved_at

    session.add(result)
    await session.commit()
    await session.refresh(result)
    return result


async def amend_result(session: AsyncSession, original: Result, data: ResultAmend, entered_by: uuid.UUID) -> Result:
    """Only approved results are amended; drafts are edited in place."""
    if original.approved_by is None:
        raise StateConflictError("Only approved results can be amended", state="draft")

    amendment = Result(
        **data.model_dump(exclude={"reason"}),
        order_id=original.order_id,
        entered_by=entered_by,
        amends_id=original.id,
        amendment_reason=data.reason,
    )
    session.add(amendment)
    await session.commit()
    await session.refresh(amendment)
    return amendment


# ============================================================================
# RESULT WORKLISTS
# ============================================================================
async def list_results_pending_approval(session: AsyncSession, order_type: OrderType, limit: int = 100) -> List[Result]:
    query = (
        select(Result)
        .join(Order, Order.id == Result.order_id)
        .where(Order.order_type == order_type, Result.approved_by.is_(None))
        .order_by(Result.created_at.asc())
        .limit(limit)
    )
    result = await session.execute(query)
    return result.scalars().all()


async def list_critical_results(
    session: AsyncSession,
    order_type: OrderType,
    department_id: Optional[uuid.UUID] = None,
    limit: int = 50,
) -> List[Result]:
    """Abnormal or critical results, newest first."""
    query = (
        select(Result)
        .join(Order, Order.id == Result.order_id)
        .where(Order.order_type == order_type, or_(Result.critical_flag.is_(True), Result.is_abnormal.is_(True)))
        .order_by(Result.created_at.desc())
        .limit(limit)
    )
    if department_id:
        query = query.join(Encounter, Encounter.id == Order.encounter_id).where(
            Encounter.department_id == department_id
        )

    result = await session.execute(query)
    return result.scalars().all()
