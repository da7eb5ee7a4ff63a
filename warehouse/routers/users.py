import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.deps import require_admin
from warehouse.error import abort
from warehouse.models import Client, User
from warehouse.schemas import UserCreate, UserRead, UserRole, UserStatus, UserUpdate
from warehouse.security import hash_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


def _username_taken(session: Session, username: str, exclude_id: int | None = None) -> bool:
    stmt = select(User).where(func.lower(User.username) == username.lower())
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    return session.exec(stmt).first() is not None


def _farmer_client_id(session: Session, role: str, client_id: int | None) -> int | None:
    # 只有 Farmer 关联客户，其它角色一律清空
    if role != UserRole.FARMER.value:
        return None
    if client_id is not None and not session.get(Client, client_id):
        abort(404, "NOT_FOUND", "Client not found.")
    return client_id


@router.get("", response_model=list[UserRead])
def list_users(
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    return session.exec(select(User).order_by(User.id.asc())).all()


@router.post("", response_model=UserRead, status_code=201)
def create_user(
    data: UserCreate,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    if _username_taken(session, data.username):
        abort(409, "USERNAME_EXISTS", "Username already exists.")

    user = User(
        name=data.name,
        username=data.username,
        role=data.role.value,
        status=UserStatus.ACTIVE.value,
        password_hash=hash_password(data.password),
        client_id=_farmer_client_id(session, data.role.value, data.client_id),
    )
    session.add(user)

    # 并发下 unique 冲突兜底
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, "USERNAME_EXISTS", "Username already exists.")

    session.refresh(user)
    logger.info("User created: %s (ID: %s)", user.name, user.id)
    return user


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    data: UserUpdate,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    user = session.get(User, user_id)
    if not user:
        abort(404, "NOT_FOUND", "User not found.")

    if data.name:
        user.name = data.name
    if data.username and data.username != user.username:
        if _username_taken(session, data.username, exclude_id=user.id):
            abort(409, "USERNAME_EXISTS", "Username already exists.")
        user.username = data.username
    if data.role:
        user.role = data.role.value
    if data.status:
        user.status = data.status.value
    if data.password:
        user.password_hash = hash_password(data.password)

    client_id = data.client_id if "client_id" in data.model_fields_set else user.client_id
    user.client_id = _farmer_client_id(session, user.role, client_id)

    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, "USERNAME_EXISTS", "Username already exists.")

    session.refresh(user)
    logger.info("User updated: %s (ID: %s)", user.name, user.id)
    return user


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: int,
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    user = session.get(User, user_id)
    if not user:
        abort(404, "NOT_FOUND", "User not found.")
    if user.role == UserRole.ADMIN.value:
        abort(403, "ADMIN_PROTECTED", "Cannot delete an admin user.")

    session.delete(user)
    # 已经记录过流水的用户，外键约束生效的库会拒绝删除
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        abort(409, "USER_IN_USE", "User has recorded stock movements and cannot be deleted.")
    logger.info("User deleted (ID: %s)", user_id)
    return Response(status_code=204)
