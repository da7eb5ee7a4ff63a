import datetime
import io
from collections import defaultdict
from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.table import Table, TableStyleInfo
from sqlmodel import Session, select

from warehouse.db import get_session
from warehouse.deps import require_admin
from warehouse.models import Client, StockMovement, User
from warehouse.schemas import MovementType
from warehouse.services.ledger import client_stock_summary
from warehouse.services.movement_query import MovementFilters, movement_filters, select_movements

router = APIRouter(prefix="/api/exports", tags=["exports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

CLIENT_STOCK_HEADERS = [
    "Client", "Join date", "Total stock (kg)", "Net product stock (kg)", "Plastic boxes", "Wood boxes",
]
CLIENT_LIST_HEADERS = [
    "ID", "Name / Company", "Join date", "Type", "Phone", "Address", "Email", "Comment",
]
MOVEMENT_HEADERS = [
    "Movement ID", "Date", "Client", "Product", "Type",
    "Total weight (kg)", "Net product weight (kg)",
    "Plastic boxes", "Plastic box unit weight (kg)",
    "Wood boxes", "Wood box unit weight (kg)",
    "Recorded by", "Receptionist comment", "Farmer comment",
]


def build_workbook(
    title: str,
    table_name: str,
    headers: list[str],
    rows: list[list],
    widths: list[int],
    number_formats: dict[int, str] | None = None,
) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = title

    header_font = Font(bold=True)
    header_fill = PatternFill("solid", fgColor="DDDDDD")
    header_align = Alignment(horizontal="center", vertical="center")

    ws.append(headers)
    ws.row_dimensions[1].height = 26
    for col in range(1, len(headers) + 1):
        cell = ws.cell(row=1, column=col)
        cell.font = header_font
        cell.fill = header_fill
        cell.alignment = header_align

    for row in rows:
        ws.append(row)

    data_end_row = 1 + len(rows)
    ws.freeze_panes = "A2"

    for col, fmt in (number_formats or {}).items():
        for r in range(2, data_end_row + 1):
            ws.cell(row=r, column=col).number_format = fmt

    for i, w in enumerate(widths, start=1):
        ws.column_dimensions[get_column_letter(i)].width = w

    # 没有数据时也至少覆盖表头行，避免范围非法
    last_col = get_column_letter(len(headers))
    table = Table(displayName=table_name, ref=f"A1:{last_col}{max(1, data_end_row)}")
    table.tableStyleInfo = TableStyleInfo(
        name="TableStyleMedium9",
        showFirstColumn=False,
        showLastColumn=False,
        showRowStripes=True,
        showColumnStripes=False,
    )
    ws.add_table(table)

    ws.append([])
    ws.append(["Exported at", datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")])
    return wb


def xlsx_response(wb: Workbook, filename: str) -> Response:
    buf = io.BytesIO()
    wb.save(buf)
    headers = {
        "Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}"
    }
    return Response(content=buf.getvalue(), media_type=XLSX_MEDIA_TYPE, headers=headers)


@router.get("/client-stock.xlsx")
def export_client_stock(
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    clients = session.exec(select(Client).order_by(Client.id.asc())).all()

    by_client: dict[int, list[StockMovement]] = defaultdict(list)
    for m in session.exec(select(StockMovement)).all():
        by_client[m.client_id].append(m)

    rows = []
    for c in clients:
        stock = client_stock_summary(by_client.get(c.id, []))
        rows.append([
            c.name,
            c.join_date,
            round(stock.total_weight, 2),
            round(stock.product_weight, 2),
            stock.plastic_boxes,
            stock.wood_boxes,
        ])

    wb = build_workbook(
        "Client stock",
        "ClientStock",
        CLIENT_STOCK_HEADERS,
        rows,
        widths=[28, 14, 18, 22, 14, 12],
        number_formats={2: "yyyy-mm-dd", 3: "0.00", 4: "0.00"},
    )
    today = datetime.date.today().isoformat()
    return xlsx_response(wb, f"client_stock_{today}.xlsx")


@router.get("/clients.xlsx")
def export_clients(
    session: Session = Depends(get_session),
    _admin: User = Depends(require_admin),
):
    clients = session.exec(select(Client).order_by(Client.id.asc())).all()
    rows = [
        [c.id, c.name, c.join_date, c.type, c.phone, c.address, c.email, c.comment or ""]
        for c in clients
    ]

    wb = build_workbook(
        "Clients",
        "Clients",
        CLIENT_LIST_HEADERS,
        rows,
        widths=[8, 28, 14, 14, 16, 32, 28, 32],
        number_formats={3: "yyyy-mm-dd"},
    )
    today = datetime.date.today().isoformat()
    return xlsx_response(wb, f"client_list_{today}.xlsx")


@router.get("/movements.xlsx")
def export_movements(
    filters: MovementFilters = Depends(movement_filters),
    session: Session = Depends(get_session),
    admin: User = Depends(require_admin),
):
    movements = session.exec(select_movements(filters, admin)).all()
    client_names = {c.id: c.name for c in session.exec(select(Client)).all()}
    user_names = {u.id: u.name for u in session.exec(select(User)).all()}

    rows = [
        [
            m.id,
            m.date,
            client_names.get(m.client_id, ""),
            m.product,
            "In" if m.type == MovementType.IN.value else "Out",
            m.total_weight,
            m.product_weight,
            m.plastic_box_count or 0,
            m.plastic_box_weight or 0,
            m.wood_box_count or 0,
            m.wood_box_weight or 0,
            user_names.get(m.recorded_by_user_id, ""),
            m.comment or "",
            m.farmer_comment or "",
        ]
        for m in movements
    ]

    wb = build_workbook(
        "Movements",
        "Movements",
        MOVEMENT_HEADERS,
        rows,
        widths=[12, 12, 24, 18, 8, 16, 20, 12, 20, 10, 18, 18, 30, 30],
        number_formats={2: "yyyy-mm-dd", 6: "0.00", 7: "0.00"},
    )
    today = datetime.date.today().isoformat()
    return xlsx_response(wb, f"movements_{today}.xlsx")
