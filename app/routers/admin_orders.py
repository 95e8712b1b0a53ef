"""Admin order list API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.deps import get_db, require_admin
from app.schemas.auth import ActorSession
from app.schemas.orders import AdminOrderListItem, AdminOrderListResponse, OrderRead
from app.services import inbox_service
from app.utils.pagination import DEFAULT_PAGE, DEFAULT_PAGE_SIZE

router = APIRouter(prefix="/admin/orders", tags=["Admin - Orders"])


@router.get("", response_model=AdminOrderListResponse)
def list_orders(
    q: str | None = None,
    status: str | None = None,
    assigned: str | None = None,
    updated_within: str | None = Query(None, alias="updatedWithin"),
    project_type: str | None = Query(None, alias="projectType"),
    unread: bool = False,
    page: int = DEFAULT_PAGE,
    page_size: int = Query(DEFAULT_PAGE_SIZE, alias="pageSize"),
    db: Session = Depends(get_db),
    actor: ActorSession = Depends(require_admin),
) -> AdminOrderListResponse:
    """List orders with filters, unread counts and latest activity."""
    result = inbox_service.list_admin_orders(
        db,
        viewer=actor,
        filters=inbox_service.AdminOrderFilters(
            status=status,
            assigned=assigned,
            updated_within=updated_within,
            q=q,
            project_type=project_type,
            unread_only=unread,
        ),
        page=page,
        page_size=page_size,
    )
    rows = [
        AdminOrderListItem(
            **OrderRead.model_validate(row.order).model_dump(),
            customer_email=row.customer_email,
            latest_update_at=row.latest_update_at,
            unread_count=row.unread_count,
            age_hours=row.age_hours,
        )
        for row in result.rows
    ]
    return AdminOrderListResponse(
        rows=rows,
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )
