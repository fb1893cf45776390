# medrec/api/endpoints/orders.py

"""
Lab and radiology orders share their workflow, so both routers come out of
one factory. Each router binds its own resource name ("labOrder" or
"radiologyOrder"), which keeps the permission checks static per route.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from medrec.api.deps import get_db_session
from medrec.core.audit import audit_action
from medrec.core.rbac import RequirePermission
from medrec.models.enums import OrderStatus, OrderType
from medrec.models.order import Order, Result
from medrec.models.user import User
from medrec.schemas.common import ApiResponse
from medrec.schemas.order import (
    OrderCreate,
    OrderRead,
    OrderStatusUpdate,
    ResultAmend,
    ResultCreate,
    ResultRead,
    ResultUpdate,
)
from medrec.services import order_service, patient_service


def build_order_router(order_type: OrderType, resource: str, prefix: str, tag: str) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    async def ordering_clinician(order_id: UUID, session: AsyncSession = Depends(get_db_session)) -> dict:
        order = await order_service.get_order(session, order_id, order_type)
        return {"owner_id": order.ordering_clinician_id}

    # ---------------------------------------------------------------
    # ORDERS
    # ---------------------------------------------------------------
    @router.get("/", response_model=ApiResponse[List[OrderRead]])
    async def list_orders(
        encounter_id: Optional[UUID] = Query(None),
        status_filter: Optional[OrderStatus] = Query(None, alias="status"),
        limit: int = Query(50, ge=1, le=200),
        offset: int = Query(0, ge=0),
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        orders = await order_service.list_orders(session, order_type, encounter_id, status_filter, limit, offset)
        return ApiResponse(data=[OrderRead.model_validate(o) for o in orders])

    # Fixed paths are declared before /{order_id}
    @router.get("/pending", response_model=ApiResponse[List[OrderRead]])
    async def list_pending_orders(
        limit: int = Query(100, ge=1, le=500),
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        orders = await order_service.list_pending_orders(session, order_type, limit)
        return ApiResponse(data=[OrderRead.model_validate(o) for o in orders])

    @router.get("/patient/{patient_id}", response_model=ApiResponse[List[OrderRead]])
    async def list_patient_orders(
        patient_id: UUID,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        await patient_service.get_patient(session, patient_id)
        orders = await order_service.list_patient_orders(session, order_type, patient_id)
        return ApiResponse(data=[OrderRead.model_validate(o) for o in orders])

    @router.get("/results/pending-approval", response_model=ApiResponse[List[ResultRead]])
    async def list_results_pending_approval(
        limit: int = Query(100, ge=1, le=500),
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "update")),
    ):
        results = await order_service.list_results_pending_approval(session, order_type, limit)
        return ApiResponse(data=[ResultRead.model_validate(r) for r in results])

    @router.get("/results/critical", response_model=ApiResponse[List[ResultRead]])
    async def list_critical_results(
        department_id: Optional[UUID] = Query(None),
        limit: int = Query(50, ge=1, le=200),
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        results = await order_service.list_critical_results(session, order_type, department_id, limit)
        return ApiResponse(data=[ResultRead.model_validate(r) for r in results])

    @router.get("/{order_id}", response_model=ApiResponse[OrderRead])
    async def get_order(
        order_id: UUID,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        return ApiResponse(data=OrderRead.model_validate(order))

    @router.post("/", response_model=ApiResponse[OrderRead], status_code=status.HTTP_201_CREATED)
    @audit_action("create", resource)
    async def create_order(
        data: OrderCreate,
        session: AsyncSession = Depends(get_db_session),
        current_user: User = Depends(RequirePermission(resource, "create")),
    ):
        order = await order_service.create_order(session, order_type, data, clinician_id=current_user.id)
        return ApiResponse(message="Order placed", data=OrderRead.model_validate(order))

    @router.patch("/{order_id}/status", response_model=ApiResponse[OrderRead])
    @audit_action("update_status", resource, id_param="order_id", before=Order)
    async def update_order_status(
        order_id: UUID,
        data: OrderStatusUpdate,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "update")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        order = await order_service.update_order_status(session, order, data)
        return ApiResponse(message="Order status updated", data=OrderRead.model_validate(order))

    # Ordering clinician only (admins excepted)
    @router.post("/{order_id}/cancel", response_model=ApiResponse[OrderRead])
    @audit_action("cancel", resource, id_param="order_id", before=Order)
    async def cancel_order(
        order_id: UUID,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "close", context=ordering_clinician)),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        order = await order_service.cancel_order(session, order)
        return ApiResponse(message="Order cancelled", data=OrderRead.model_validate(order))

    # ---------------------------------------------------------------
    # RESULTS
    # ---------------------------------------------------------------
    @router.get("/{order_id}/results", response_model=ApiResponse[List[ResultRead]])
    async def list_results(
        order_id: UUID,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "read")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        results = await order_service.list_results(session, order)
        return ApiResponse(data=[ResultRead.model_validate(r) for r in results])

    @router.post(
        "/{order_id}/results",
        response_model=ApiResponse[ResultRead],
        status_code=status.HTTP_201_CREATED,
    )
    @audit_action("create_result", "result")
    async def create_result(
        order_id: UUID,
        data: ResultCreate,
        session: AsyncSession = Depends(get_db_session),
        current_user: User = Depends(RequirePermission(resource, "update")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        result = await order_service.create_result(session, order, data, entered_by=current_user.id)
        return ApiResponse(message="Result entered", data=ResultRead.model_validate(result))

    @router.put("/{order_id}/results/{result_id}", response_model=ApiResponse[ResultRead])
    @audit_action("update_result", "result", id_param="result_id", before=Result)
    async def update_result(
        order_id: UUID,
        result_id: UUID,
        data: ResultUpdate,
        session: AsyncSession = Depends(get_db_session),
        _: User = Depends(RequirePermission(resource, "update")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        result = await order_service.get_result(session, order, result_id)
        result = await order_service.update_result(session, result, data)
        return ApiResponse(message="Result updated", data=ResultRead.model_validate(result))

    @router.post("/{order_id}/results/{result_id}/approve", response_model=ApiResponse[ResultRead])
    @audit_action("approve", "result", id_param="result_id", before=Result)
    async def approve_result(
        order_id: UUID,
        result_id: UUID,
        session: AsyncSession = Depends(get_db_session),
        current_user: User = Depends(RequirePermission(resource, "update")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        result = await order_service.get_result(session, order, result_id)
        result = await order_service.approve_result(session, result, approver_id=current_user.id)
        return ApiResponse(message="Result approved", data=ResultRead.model_validate(result))

    @router.post(
        "/{order_id}/results/{result_id}/amend",
        response_model=ApiResponse[ResultRead],
        status_code=status.HTTP_201_CREATED,
    )
    @audit_action("amend", "result")
    async def amend_result(
        order_id: UUID,
        result_id: UUID,
        data: ResultAmend,
        session: AsyncSession = Depends(get_db_session),
        current_user: User = Depends(RequirePermission(resource, "update")),
    ):
        order = await order_service.get_order(session, order_id, order_type)
        original = await order_service.get_result(session, order, result_id)
        amendment = await order_service.amend_result(session, original, data, entered_by=current_user.id)
        return ApiResponse(message="Result amended", data=ResultRead.model_validate(amendment))

    return router


lab_router = build_order_router(OrderType.Lab, "labOrder", "/api/lab-orders", "Lab Orders")
radiology_router = build_order_router(
    OrderType.Radiology, "radiologyOrder", "/api/radiology-orders", "Radiology Orders"
)
