import logging

from fastapi import HTTPException
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session, create_engine, select

from warehouse.config import settings
from warehouse.models import User
from warehouse.schemas import UserRole, UserStatus
from warehouse.security import hash_password

logger = logging.getLogger(__name__)


def _make_engine(url: str):
    if not url.startswith("sqlite"):
        return create_engine(url)
    if url in ("sqlite://", "sqlite:///:memory:"):
        # 内存库：所有 session 共用一个连接，否则每个连接都是一个空库
        return create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(url, connect_args={"check_same_thread": False})


engine = _make_engine(settings.database_url)


def create_db_and_tables() -> None:
    SQLModel.metadata.create_all(engine)


def seed_admin() -> None:
    with Session(engine) as session:
        existing = session.exec(select(User).where(User.role == UserRole.ADMIN.value)).first()
        if existing:
            logger.info("Admin user already exists.")
            return

        admin = User(
            username=settings.admin_username,
            name=settings.admin_name,
            role=UserRole.ADMIN.value,
            status=UserStatus.ACTIVE.value,
            password_hash=hash_password(settings.admin_password),
        )
        session.add(admin)
        session.commit()
        logger.info("No admin user found, created initial admin %r.", admin.username)


def init_db() -> None:
    create_db_and_tables()
    seed_admin()


def get_session():
    session = Session(engine)
    try:
        yield session
    except HTTPException:
        # 业务/鉴权错误：直接抛出，不做 rollback
        raise
    except Exception:
        session.rollback()
        logger.exception("session rolled back")
        raise
    finally:
        session.close()
