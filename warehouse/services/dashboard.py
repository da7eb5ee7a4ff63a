import datetime
from collections import defaultdict
from typing import Optional, Sequence

from warehouse.models import Client, StockMovement
from warehouse.schemas import DashboardPeriod, MovementType
from warehouse.services.ledger import client_stock_summary, sign

PERIOD_DAYS = {
    DashboardPeriod.LAST_7_DAYS: 7,
    DashboardPeriod.LAST_30_DAYS: 30,
    DashboardPeriod.LAST_90_DAYS: 90,
}

TOP_PRODUCTS_LIMIT = 5


def period_start(period: DashboardPeriod, today: datetime.date) -> Optional[datetime.date]:
    days = PERIOD_DAYS.get(period)
    if days is None:
        return None
    return today - datetime.timedelta(days=days)


def _in_out(rows: Sequence[StockMovement]) -> tuple[float, float]:
    stock_in = sum(m.product_weight for m in rows if m.type == MovementType.IN.value)
    stock_out = sum(m.product_weight for m in rows if m.type == MovementType.OUT.value)
    return stock_in, stock_out


def daily_trend(rows: Sequence[StockMovement]) -> list[dict]:
    daily: dict[datetime.date, dict] = defaultdict(lambda: {"stock_in": 0.0, "stock_out": 0.0})
    for m in rows:
        key = "stock_in" if m.type == MovementType.IN.value else "stock_out"
        daily[m.date][key] += m.product_weight
    return [{"date": d, **daily[d]} for d in sorted(daily)]


def top_products(rows: Sequence[StockMovement], limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    totals: dict[str, float] = defaultdict(float)
    for m in rows:
        totals[m.product] += m.product_weight * sign(m.type)
    ranked = sorted(
        ((product, weight) for product, weight in totals.items() if weight > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    return [{"product": p, "product_weight": w} for p, w in ranked[:limit]]


def admin_dashboard(
    clients: Sequence[Client],
    movements: Sequence[StockMovement],
    period: DashboardPeriod,
    today: datetime.date,
) -> dict:
    """
    管理员总览。

    入库/出库和趋势只统计所选时间段；库存合计、箱子合计、Top 产品永远是当前值（全量流水）。
    """
    start = period_start(period, today)
    in_period = [m for m in movements if start is None or m.date >= start]
    stock_in, stock_out = _in_out(in_period)

    by_client: dict[int, list[StockMovement]] = defaultdict(list)
    for m in movements:
        by_client[m.client_id].append(m)

    total_stock = 0.0
    plastic = 0
    wood = 0
    for client in clients:
        summary = client_stock_summary(by_client.get(client.id, []))
        total_stock += summary.product_weight
        plastic += summary.plastic_boxes
        wood += summary.wood_boxes

    return {
        "period": period,
        "start_date": start,
        "total_clients": len(clients),
        "stock_in": stock_in,
        "stock_out": stock_out,
        "total_stock": total_stock,
        "total_plastic_boxes": plastic,
        "total_wood_boxes": wood,
        "trend": daily_trend(in_period),
        "top_products": top_products(movements),
    }


def receptionist_dashboard(
    movements: Sequence[StockMovement], user_id: int, today: datetime.date
) -> dict:
    mine = [m for m in movements if m.recorded_by_user_id == user_id and m.date == today]
    stock_in, stock_out = _in_out(mine)
    return {
        "date": today,
        "movements_count": len(mine),
        "stock_in": stock_in,
        "stock_out": stock_out,
    }
