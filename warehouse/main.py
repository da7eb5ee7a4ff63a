import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from warehouse.config import configure_logging
from warehouse.db import init_db
from warehouse.routers import auth, clients, dashboard, exports, movements, users

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    init_db()  # 建表 + 首个管理员
    yield
    logger.info("Service stopped.")


app = FastAPI(title="WareHouse Connect", lifespan=lifespan)

app.include_router(auth.router)
app.include_router(clients.router)
app.include_router(users.router)
app.include_router(movements.router)
app.include_router(dashboard.router)
app.include_router(exports.router)


@app.get("/health")
def health():
    return {"ok": True}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # abort() 的 detail 是 {"code", "message"}，直接铺平成响应体
    if isinstance(exc.detail, dict):
        content = exc.detail
    else:
        content = {"code": "HTTP_ERROR", "message": str(exc.detail)}
    return JSONResponse(status_code=exc.status_code, content=content, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"loc": [str(p) for p in e["loc"]], "msg": e["msg"], "type": e["type"]}
        for e in exc.errors()
    ]
    first = errors[0] if errors else None
    message = f"{'.'.join(first['loc'])}: {first['msg']}" if first else "Invalid request."
    return JSONResponse(
        status_code=400,
        content={"code": "VALIDATION_ERROR", "message": message, "errors": errors},
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content={"code": "DATABASE_ERROR", "message": "Database error"})
