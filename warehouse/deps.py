from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlmodel import Session

from warehouse.db import get_session
from warehouse.error import _auth_401, abort
from warehouse.models import User
from warehouse.schemas import UserRole, UserStatus
from warehouse.security import decode_token

# auto_error=False，让我们接管“没带token”的错误格式
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)


def require_user(
    token: str | None = Depends(oauth2_scheme),
    session: Session = Depends(get_session),
) -> User:
    if not token:
        raise _auth_401("NOT_AUTHENTICATED", "Not logged in or session expired, please log in again.")

    try:
        user_id = decode_token(token)
    except (JWTError, ValueError):
        raise _auth_401("INVALID_TOKEN", "Invalid or expired token, please log in again.")

    # token 验过了，但用户在库里不存在（账号被删）
    user = session.get(User, user_id)
    if not user:
        raise _auth_401("USER_NOT_FOUND", "User does not exist or has been deleted.")

    if user.status == UserStatus.SUSPENDED.value:
        abort(403, "ACCOUNT_SUSPENDED", "This account has been suspended.")

    return user


def require_roles(*roles: UserRole):
    allowed = {r.value for r in roles}

    def _checker(user: User = Depends(require_user)) -> User:
        if user.role not in allowed:
            abort(403, "FORBIDDEN", "You are not allowed to perform this action.")
        return user

    return _checker


require_admin = require_roles(UserRole.ADMIN)
require_staff = require_roles(UserRole.ADMIN, UserRole.RECEPTIONIST)
