import datetime

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.deps import require_admin, require_staff
from warehouse.models import Client, StockMovement, User
from warehouse.schemas import DashboardPeriod, DashboardRead, ReceptionistDashboardRead
from warehouse.services.dashboard import admin_dashboard, receptionist_dashboard

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("", response_model=DashboardRead)
def get_dashboard(
    period: DashboardPeriod = Query(DashboardPeriod.LAST_30_DAYS, description="7d / 30d / 90d / all"),
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    clients = session.exec(select(Client)).all()
    movements = session.exec(select(StockMovement)).all()
    return admin_dashboard(clients, movements, period, datetime.date.today())


@router.get("/receptionist", response_model=ReceptionistDashboardRead)
def get_receptionist_dashboard(
    session: Session = Depends(get_session),
    user: User = Depends(require_staff),
):
    today = datetime.date.today()
    stmt = select(StockMovement).where(
        StockMovement.recorded_by_user_id == user.id,
        StockMovement.date == today,
    )
    return receptionist_dashboard(session.exec(stmt).all(), user.id, today)
