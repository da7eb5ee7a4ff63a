import datetime
import logging

from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.deps import require_staff, require_user
from warehouse.error import abort
from warehouse.models import Client, StockMovement, User
from warehouse.schemas import (
    MovementCreate,
    MovementPatch,
    MovementRead,
    UnreadCount,
    UserRole,
)
from warehouse.services.ledger import (
    client_lock,
    load_client_rows,
    net_product_weight,
    validate_movement,
)
from warehouse.services.movement_query import MovementFilters, movement_filters, select_movements

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/movements", tags=["movements"])


@router.post("", response_model=MovementRead, status_code=201)
def create_movement(
    data: MovementCreate,
    session: Session = Depends(get_session),
    user: User = Depends(require_staff),
):
    if not session.get(Client, data.client_id):
        abort(404, "NOT_FOUND", "Client not found.")

    plastic_count = data.plastic_box_count or 0
    wood_count = data.wood_box_count or 0
    product_weight = net_product_weight(
        data.total_weight,
        plastic_count, data.plastic_box_weight,
        wood_count, data.wood_box_weight,
    )
    comment = (data.comment or "").strip() or None

    # 校验和写入必须在同一把客户锁里，避免两笔出库同时通过校验
    with client_lock(data.client_id):
        rows = load_client_rows(session, data.client_id)
        validate_movement(data.type, data.product, product_weight, plastic_count, wood_count, rows)

        mv = StockMovement(
            client_id=data.client_id,
            type=data.type.value,
            product=data.product,
            total_weight=data.total_weight,
            # 箱数为 0 时不记录箱子信息
            plastic_box_count=plastic_count if plastic_count > 0 else None,
            plastic_box_weight=(data.plastic_box_weight or 0) if plastic_count > 0 else None,
            wood_box_count=wood_count if wood_count > 0 else None,
            wood_box_weight=(data.wood_box_weight or 0) if wood_count > 0 else None,
            product_weight=product_weight,
            date=datetime.date.today(),
            recorded_by_user_id=user.id,
            comment=comment,
            is_comment_read=False,
        )
        session.add(mv)
        session.commit()
        session.refresh(mv)

    logger.info("Movement created for client %s (ID: %s)", data.client_id, mv.id)
    return mv


@router.get("", response_model=list[MovementRead])
def list_movements(
    filters: MovementFilters = Depends(movement_filters),
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    return session.exec(select_movements(filters, user)).all()


@router.get("/unread-count", response_model=UnreadCount)
def unread_anomaly_count(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    stmt = (
        select(func.count())
        .select_from(StockMovement)
        .where(
            StockMovement.recorded_by_user_id == user.id,
            StockMovement.farmer_comment.is_not(None),
            StockMovement.farmer_comment != "",
            StockMovement.is_comment_read == False,  # noqa: E712
        )
    )
    return {"count": session.exec(stmt).one()}


@router.patch("/{movement_id}", response_model=MovementRead)
def patch_movement(
    movement_id: int,
    body: MovementPatch,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    """
    流水只允许改两个字段：
      - farmerComment：关联客户的 Farmer 填写异常说明，写入后一律变回未读
      - isCommentRead：前台/管理员标记已读，不动 farmerComment
    两个都传时，先写评论，再应用显式的已读标记。
    """
    if body.farmer_comment is None and body.is_comment_read is None:
        abort(400, "NO_FIELDS", "No fields to update.")

    mv = session.get(StockMovement, movement_id)
    if not mv:
        abort(404, "NOT_FOUND", "Movement not found.")

    if body.farmer_comment is not None:
        if user.role != UserRole.FARMER.value or user.client_id != mv.client_id:
            abort(403, "FORBIDDEN", "Only the client's farmer can comment on this movement.")
        mv.farmer_comment = body.farmer_comment
        mv.is_comment_read = False

    if body.is_comment_read is not None:
        if user.role not in (UserRole.ADMIN.value, UserRole.RECEPTIONIST.value):
            abort(403, "FORBIDDEN", "Only staff can acknowledge comments.")
        mv.is_comment_read = body.is_comment_read

    session.add(mv)
    session.commit()
    session.refresh(mv)
    logger.info("Movement ID %s updated.", movement_id)
    return mv
