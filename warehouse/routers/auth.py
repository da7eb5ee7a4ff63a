from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.error import abort
from warehouse.models import User
from warehouse.schemas import LoginRequest, LoginResponse, UserStatus
from warehouse.security import create_access_token, verify_password

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
def login(data: LoginRequest, session: Session = Depends(get_session)):
    # 用户名不区分大小写，但角色必须和账号一致
    stmt = select(User).where(
        func.lower(User.username) == data.username.lower(),
        User.role == data.role.value,
    )
    user = session.exec(stmt).first()
    if (not user) or (not verify_password(data.password, user.password_hash)):
        abort(401, "INVALID_CREDENTIALS", "Invalid credentials or role.")

    if user.status == UserStatus.SUSPENDED.value:
        abort(403, "ACCOUNT_SUSPENDED", "This account has been suspended.")

    token = create_access_token(user.id, user.role)
    return {**user.model_dump(exclude={"password_hash"}), "access_token": token}
