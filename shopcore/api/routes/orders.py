from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from shopcore.core.config import DEFAULT_PAGE_LIMIT
from shopcore.core.database import get_db
from shopcore.core.exceptions import NotFound, ShopError
from shopcore.models.database import OrderStatus
from shopcore.models.schemas import OrderCreate, OrderCreated, OrderSearch, OrderView, Pagination, SimpleOrderView
from shopcore.services.order_service import OrderService
from shopcore.services.projection import ProjectionStrategy, to_order_view, to_simple_order_view

router = APIRouter()


def _to_http_error(e: ShopError) -> HTTPException:
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


@router.post("/", response_model=OrderCreated)
async def create_order(order_data: OrderCreate, db: Session = Depends(get_db)):
    """Place an order for one item"""
    try:
        order_id = OrderService(db).create_order(
            order_data.member_id, order_data.item_id, order_data.quantity
        )
    except ShopError as e:
        raise _to_http_error(e)
    return OrderCreated(order_id=order_id)


@router.get("/", response_model=List[SimpleOrderView])
async def search_orders(
    status: Optional[OrderStatus] = None,
    member_name: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Search orders by status and member name (at most 1000)"""
    orders = OrderService(db).search_orders(OrderSearch(status=status, member_name=member_name))
    return [to_simple_order_view(order) for order in orders]


@router.get("/views", response_model=List[OrderView])
async def list_order_views(
    strategy: ProjectionStrategy = ProjectionStrategy.BATCHED,
    offset: Optional[int] = Query(None, ge=0),
    limit: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    """Orders with their lines, loaded with the requested strategy"""
    pagination = None
    if offset is not None or limit is not None:
        pagination = Pagination(
            offset=offset if offset is not None else 0,
            limit=limit if limit is not None else DEFAULT_PAGE_LIMIT,
        )

    try:
        return OrderService(db).list_orders_projected(strategy, pagination)
    except ShopError as e:
        raise _to_http_error(e)


@router.get("/simple-views", response_model=List[SimpleOrderView])
async def list_simple_order_views(
    strategy: ProjectionStrategy = ProjectionStrategy.FETCH_TO_ONE,
    db: Session = Depends(get_db),
):
    try:
        return OrderService(db).projections.list_simple_orders(strategy)
    except ShopError as e:
        raise _to_http_error(e)


@router.get("/{order_id}", response_model=OrderView)
async def get_order(order_id: int, db: Session = Depends(get_db)):
    """Get a specific order"""
    try:
        order = OrderService(db).find_order(order_id)
    except ShopError as e:
        raise _to_http_error(e)
    return to_order_view(order)


@router.post("/{order_id}/cancel", status_code=204)
async def cancel_order(order_id: int, db: Session = Depends(get_db)):
    """Cancel an order and put its items back in stock"""
    try:
        OrderService(db).cancel_order(order_id)
    except ShopError as e:
        raise _to_http_error(e)


@router.post("/{order_id}/delivery/complete", status_code=204)
async def complete_delivery(order_id: int, db: Session = Depends(get_db)):
    try:
        OrderService(db).complete_delivery(order_id)
    except ShopError as e:
        raise _to_http_error(e)
