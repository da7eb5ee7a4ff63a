"""库存台账计算：所有余额都是对流水的完整重算，不存累计值。"""
import logging
import threading
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterable, Iterator, Optional, Sequence

from sqlmodel import Session, select

from warehouse.error import abort
from warehouse.models import StockMovement
from warehouse.schemas import MovementType

logger = logging.getLogger(__name__)

# 按产品明细时，净重低于这个值视为已清空
EMPTY_STOCK_EPSILON = 0.005


@dataclass
class StockSummary:
    total_weight: float = 0.0
    product_weight: float = 0.0
    plastic_boxes: int = 0
    wood_boxes: int = 0


@dataclass
class ProductStock(StockSummary):
    product: str = ""


def sign(movement_type: str) -> int:
    return 1 if movement_type == MovementType.IN.value else -1


def net_product_weight(
    total_weight: float,
    plastic_box_count: Optional[int] = None,
    plastic_box_weight: Optional[float] = None,
    wood_box_count: Optional[int] = None,
    wood_box_weight: Optional[float] = None,
) -> float:
    plastic = (plastic_box_count or 0) * (plastic_box_weight or 0)
    wood = (wood_box_count or 0) * (wood_box_weight or 0)
    return total_weight - plastic - wood


def _add(acc: StockSummary, m: StockMovement) -> None:
    s = sign(m.type)
    acc.total_weight += m.total_weight * s
    acc.product_weight += m.product_weight * s
    acc.plastic_boxes += (m.plastic_box_count or 0) * s
    acc.wood_boxes += (m.wood_box_count or 0) * s


def client_stock_summary(rows: Iterable[StockMovement]) -> StockSummary:
    summary = StockSummary()
    for m in rows:
        _add(summary, m)
    return summary


def product_stock(rows: Iterable[StockMovement], product: str) -> float:
    # 产品名精确匹配（大小写敏感），拼写不同就是不同的库存
    return sum(m.product_weight * sign(m.type) for m in rows if m.product == product)


def stock_by_product(rows: Iterable[StockMovement]) -> list[ProductStock]:
    buckets: dict[str, ProductStock] = {}
    for m in rows:
        if m.product not in buckets:
            buckets[m.product] = ProductStock(product=m.product)
        _add(buckets[m.product], m)

    return sorted(
        (p for p in buckets.values() if p.product_weight > EMPTY_STOCK_EPSILON),
        key=lambda p: p.product,
    )


def validate_movement(
    movement_type: MovementType,
    product: str,
    product_weight: float,
    plastic_box_count: Optional[int],
    wood_box_count: Optional[int],
    rows: Sequence[StockMovement],
) -> None:
    """
    出入库前的校验，不通过直接 abort(400)。

    - IN/OUT：净重不能为负
    - OUT：净重不能超过该产品可用库存；塑料箱/木箱数不能超过客户箱子余额
    - 相等是允许的，只有严格超出才拒绝
    """
    if product_weight < 0:
        abort(
            400,
            "NEGATIVE_NET_WEIGHT",
            "Net product weight is negative. Check the total weight and the box details.",
        )

    if movement_type != MovementType.OUT:
        return

    available = product_stock(rows, product)
    # 按展示精度（0.01 kg）比较，浮点累加误差不能让“等于可用库存”的出库被拒
    if round(product_weight, 2) > round(available, 2):
        logger.warning(
            "rejected withdrawal of %r: available %.2f, requested %.2f",
            product, available, product_weight,
        )
        abort(
            400,
            "INSUFFICIENT_PRODUCT_STOCK",
            f"Insufficient net product stock. Available: {available:.2f} kg. "
            f"Requested: {product_weight:.2f} kg.",
        )

    summary = client_stock_summary(rows)
    plastic = plastic_box_count or 0
    wood = wood_box_count or 0
    if plastic > summary.plastic_boxes:
        abort(
            400,
            "INSUFFICIENT_PLASTIC_BOXES",
            f"Insufficient plastic boxes. Available: {summary.plastic_boxes}. Requested: {plastic}.",
        )
    if wood > summary.wood_boxes:
        abort(
            400,
            "INSUFFICIENT_WOOD_BOXES",
            f"Insufficient wood boxes. Available: {summary.wood_boxes}. Requested: {wood}.",
        )


def load_client_rows(session: Session, client_id: int) -> list[StockMovement]:
    stmt = select(StockMovement).where(StockMovement.client_id == client_id)
    return list(session.exec(stmt).all())


# 同一客户的“校验 + 写入”串行化（仅限单进程）。
# 每个客户一把锁，不回收：数量上限就是客户数，客户从不删除。
_locks_guard = threading.Lock()
_client_locks: dict[int, threading.Lock] = defaultdict(threading.Lock)


@contextmanager
def client_lock(client_id: int) -> Iterator[None]:
    with _locks_guard:
        lock = _client_locks[client_id]
    with lock:
        yield
