import datetime
from enum import Enum
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, field_validator
from pydantic.alias_generators import to_camel


# 必填文本：去掉首尾空白后不能为空
RequiredStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]


class CamelModel(BaseModel):
    # JSON 里统一用 camelCase（clientId / totalWeight ...），Python 里用 snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class UserRole(str, Enum):
    ADMIN = "Admin"
    RECEPTIONIST = "Receptionist"
    FARMER = "Farmer"


class UserStatus(str, Enum):
    ACTIVE = "Active"
    SUSPENDED = "Suspended"


class ClientType(str, Enum):
    INDIVIDUAL = "individual"
    ORGANIZATION = "organization"


class MovementType(str, Enum):
    IN = "in"
    OUT = "out"


class MovementSort(str, Enum):
    id_desc = "id_desc"
    id_asc = "id_asc"
    date_desc = "date_desc"
    date_asc = "date_asc"


class DashboardPeriod(str, Enum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    ALL = "all"


# ---------- auth / users ----------

class LoginRequest(BaseModel):
    username: RequiredStr
    password: str = Field(min_length=1)
    role: UserRole


class UserRead(CamelModel):
    id: int
    username: str
    name: str
    role: UserRole
    status: UserStatus
    client_id: Optional[int] = None


class LoginResponse(UserRead):
    access_token: str
    token_type: str = "bearer"


class UserCreate(CamelModel):
    name: RequiredStr
    username: RequiredStr
    password: str = Field(min_length=1)
    role: UserRole
    client_id: Optional[int] = None


class UserUpdate(CamelModel):
    name: Optional[RequiredStr] = None
    username: Optional[RequiredStr] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    client_id: Optional[int] = None
    password: Optional[str] = None


# ---------- clients ----------

class ClientCreate(CamelModel):
    name: RequiredStr
    type: ClientType
    phone: RequiredStr
    address: RequiredStr
    email: RequiredStr
    comment: Optional[str] = None


class ClientRead(CamelModel):
    id: int
    name: str
    join_date: datetime.date
    type: ClientType
    phone: str
    address: str
    email: str
    comment: Optional[str] = None


class StockSummaryRead(CamelModel):
    total_weight: float
    product_weight: float
    plastic_boxes: int
    wood_boxes: int


class ProductStockRead(StockSummaryRead):
    product: str


class ClientStockRead(CamelModel):
    client_id: int
    summary: StockSummaryRead
    products: list[ProductStockRead]


# ---------- movements ----------

class MovementCreate(CamelModel):
    client_id: int
    type: MovementType
    product: str
    total_weight: float = Field(..., gt=0, description="磅秤读数：产品 + 箱子的毛重")
    plastic_box_count: Optional[int] = Field(None, ge=0)
    plastic_box_weight: Optional[float] = Field(None, ge=0, description="单个塑料箱重量")
    wood_box_count: Optional[int] = Field(None, ge=0)
    wood_box_weight: Optional[float] = Field(None, ge=0, description="单个木箱重量")
    comment: Optional[str] = None

    @field_validator("product")
    @classmethod
    def product_not_blank(cls, v: str) -> str:
        # 产品名原样保存（大小写敏感），只拒绝空白
        if not v.strip():
            raise ValueError("product must not be blank")
        return v

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "clientId": 1, "type": "in", "product": "Tomatoes",
                    "totalWeight": 100, "plasticBoxCount": 2, "plasticBoxWeight": 5,
                },
                {"clientId": 1, "type": "out", "product": "Tomatoes", "totalWeight": 90},
            ]
        }
    }


class MovementRead(CamelModel):
    id: int
    client_id: int
    type: MovementType
    product: str
    total_weight: float
    plastic_box_count: Optional[int] = None
    plastic_box_weight: Optional[float] = None
    wood_box_count: Optional[int] = None
    wood_box_weight: Optional[float] = None
    product_weight: float
    date: datetime.date
    recorded_by_user_id: int
    comment: Optional[str] = None
    farmer_comment: Optional[str] = None
    is_comment_read: bool = False


class MovementPatch(CamelModel):
    farmer_comment: Optional[str] = None
    is_comment_read: Optional[bool] = None


class UnreadCount(BaseModel):
    count: int


# ---------- dashboards ----------

class TrendPoint(CamelModel):
    date: datetime.date
    stock_in: float
    stock_out: float


class TopProduct(CamelModel):
    product: str
    product_weight: float


class DashboardRead(CamelModel):
    period: DashboardPeriod
    start_date: Optional[datetime.date] = None
    total_clients: int
    stock_in: float
    stock_out: float
    total_stock: float
    total_plastic_boxes: int
    total_wood_boxes: int
    trend: list[TrendPoint]
    top_products: list[TopProduct]


class ReceptionistDashboardRead(CamelModel):
    date: datetime.date
    movements_count: int
    stock_in: float
    stock_out: float
