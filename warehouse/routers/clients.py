import logging

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.deps import require_staff, require_user
from warehouse.error import abort
from warehouse.models import Client, User
from warehouse.schemas import ClientCreate, ClientRead, ClientStockRead, UserRole
from warehouse.services.ledger import client_stock_summary, load_client_rows, stock_by_product

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/clients", tags=["clients"])


def ensure_client_visible(user: User, client_id: int) -> None:
    # Farmer 只能看自己关联的客户
    if user.role == UserRole.FARMER.value and user.client_id != client_id:
        abort(403, "FORBIDDEN", "You can only access your own stock.")


@router.get("", response_model=list[ClientRead])
def list_clients(
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    stmt = select(Client).order_by(Client.id.asc())
    if user.role == UserRole.FARMER.value:
        stmt = stmt.where(Client.id == user.client_id)
    return session.exec(stmt).all()


@router.post("", response_model=ClientRead, status_code=201)
def create_client(
    data: ClientCreate,
    session: Session = Depends(get_session),
    _user: User = Depends(require_staff),
):
    comment = (data.comment or "").strip() or None
    client = Client(
        name=data.name,
        type=data.type.value,
        phone=data.phone,
        address=data.address,
        email=data.email,
        comment=comment,
    )
    session.add(client)
    session.commit()
    session.refresh(client)
    logger.info("Client added: %s (ID: %s)", client.name, client.id)
    return client


@router.get("/{client_id}/stock", response_model=ClientStockRead)
def get_client_stock(
    client_id: int,
    session: Session = Depends(get_session),
    user: User = Depends(require_user),
):
    ensure_client_visible(user, client_id)
    if not session.get(Client, client_id):
        abort(404, "NOT_FOUND", "Client not found.")

    rows = load_client_rows(session, client_id)
    return {
        "client_id": client_id,
        "summary": client_stock_summary(rows),
        "products": stock_by_product(rows),
    }
