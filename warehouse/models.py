import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class Client(SQLModel, table=True):
    __tablename__ = "clients"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)
    join_date: datetime.date = Field(default_factory=datetime.date.today)
    type: str                          # individual / organization
    phone: str
    address: str
    email: str
    comment: Optional[str] = None


class User(SQLModel, table=True):
    __tablename__ = "users"

    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    name: str
    role: str = Field(index=True)      # Admin / Receptionist / Farmer
    status: str = Field(default="Active")
    password_hash: str

    # 只有 Farmer 才关联客户
    client_id: Optional[int] = Field(default=None, foreign_key="clients.id")


class StockMovement(SQLModel, table=True):
    __tablename__ = "stockMovements"

    id: Optional[int] = Field(default=None, primary_key=True)

    client_id: int = Field(foreign_key="clients.id", index=True)
    type: str = Field(index=True)      # in / out
    product: str = Field(index=True)

    total_weight: float
    plastic_box_count: Optional[int] = None
    plastic_box_weight: Optional[float] = None
    wood_box_count: Optional[int] = None
    wood_box_weight: Optional[float] = None
    product_weight: float              # 净重，由 total_weight 和箱重推算

    date: datetime.date = Field(default_factory=datetime.date.today, index=True)
    recorded_by_user_id: int = Field(foreign_key="users.id", index=True)

    comment: Optional[str] = None
    farmer_comment: Optional[str] = None
    is_comment_read: bool = Field(default=False)
