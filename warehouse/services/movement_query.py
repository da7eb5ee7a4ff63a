import datetime
from dataclasses import dataclass
from typing import Optional

from fastapi import Query
from sqlmodel import select

from warehouse.error import abort
from warehouse.models import StockMovement, User
from warehouse.schemas import MovementSort, MovementType, UserRole


@dataclass
class MovementFilters:
    client_id: Optional[list[int]] = None
    product: Optional[list[str]] = None
    recorded_by_user_id: Optional[list[int]] = None
    type: Optional[MovementType] = None
    start: Optional[datetime.date] = None
    end: Optional[datetime.date] = None
    sort: MovementSort = MovementSort.date_desc


def movement_filters(
    client_id: Optional[list[int]] = Query(None, alias="clientId", description="按客户过滤，可多选"),
    product: Optional[list[str]] = Query(None, description="按产品过滤，可多选（精确匹配）"),
    recorded_by_user_id: Optional[list[int]] = Query(None, alias="recordedByUserId"),
    type: Optional[MovementType] = Query(None, description="in / out"),
    start: Optional[datetime.date] = Query(None, description="开始日期（含），例：2026-01-12"),
    end: Optional[datetime.date] = Query(None, description="结束日期（含），例：2026-01-31"),
    sort: MovementSort = Query(MovementSort.date_desc),
) -> MovementFilters:
    """流水列表和流水导出共用的查询参数。"""
    if start is not None and end is not None and start > end:
        abort(400, "BAD_REQUEST", "start must not be after end.")
    return MovementFilters(client_id, product, recorded_by_user_id, type, start, end, sort)


def select_movements(filters: MovementFilters, user: User):
    stmt = select(StockMovement)

    # Farmer 只能看到自己客户的流水
    if user.role == UserRole.FARMER.value:
        stmt = stmt.where(StockMovement.client_id == user.client_id)

    if filters.client_id:
        stmt = stmt.where(StockMovement.client_id.in_(filters.client_id))
    if filters.product:
        stmt = stmt.where(StockMovement.product.in_(filters.product))
    if filters.recorded_by_user_id:
        stmt = stmt.where(StockMovement.recorded_by_user_id.in_(filters.recorded_by_user_id))
    if filters.type is not None:
        stmt = stmt.where(StockMovement.type == filters.type.value)
    if filters.start is not None:
        stmt = stmt.where(StockMovement.date >= filters.start)
    if filters.end is not None:
        stmt = stmt.where(StockMovement.date <= filters.end)

    if filters.sort == MovementSort.id_desc:
        stmt = stmt.order_by(StockMovement.id.desc())
    elif filters.sort == MovementSort.id_asc:
        stmt = stmt.order_by(StockMovement.id.asc())
    elif filters.sort == MovementSort.date_desc:
        stmt = stmt.order_by(StockMovement.date.desc(), StockMovement.id.desc())
    elif filters.sort == MovementSort.date_asc:
        stmt = stmt.order_by(StockMovement.date.asc(), StockMovement.id.asc())

    return stmt
