import logging
import os
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import EnvTruthy
from app.core.errors import BudgetError
from app.core.logging import setup_logging
from app.core.migrations import RunMigrations
from app.modules.accounts.router import router as accounts_router
from app.modules.auth.router import router as auth_router
from app.modules.budget.router import router as budget_router
from app.modules.core.router import router as core_router
from app.modules.families.router import router as families_router
from app.modules.income.router import router as income_router
from app.modules.payments.router import router as payments_router
from app.modules.reports.router import router as reports_router

setup_logging()

app = FastAPI(title="Family Budget API")
logger = logging.getLogger("app.request")
error_logger = logging.getLogger("app.errors")
startup_logger = logging.getLogger("app.startup")

allowed_origins = os.getenv("ALLOWED_ORIGINS", "")
origin_list = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
if origin_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.on_event("startup")
def run_startup_migrations() -> None:
    if EnvTruthy("RUN_MIGRATIONS_ON_STARTUP"):
        RunMigrations()
    startup_logger.info("startup complete")


@app.exception_handler(BudgetError)
async def budget_error_handler(request: Request, exc: BudgetError) -> JSONResponse:
    error_logger.debug(
        "%s %s rejected: %s (%s)", request.method, request.url.path, exc.Message, exc.Code or exc.Error
    )
    return JSONResponse(status_code=exc.StatusCode, content=exc.ToBody())


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": message, "message": message},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if location:
        message = f"{location}: {message}"
    return JSONResponse(
        status_code=400,
        content={
            "error": "Validation error",
            "message": message,
            "code": "VALIDATION_ERROR",
            "details": errors,
        },
    )


@app.middleware("http")
async def request_logger(request: Request, call_next):
    request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = int((time.perf_counter() - start) * 1000)

    parts = [f"{request.method} {request.url.path}"]
    if request.url.query:
        parts.append(f"query={request.url.query}")

    status = response.status_code
    if status >= 400:
        if status == 404:
            parts.append("ERROR: not found")
        elif status >= 500:
            parts.append("ERROR: server error")
        else:
            parts.append("ERROR: client error")

    parts.append(f"status={status}")
    parts.append(f"{duration_ms}ms")

    log_msg = " | ".join(parts)
    if status >= 500:
        logger.error(log_msg)
    elif status >= 400:
        logger.warning(log_msg)
    else:
        logger.info(log_msg)

    response.headers["X-Request-Id"] = request_id
    return response


app.include_router(core_router)
app.include_router(auth_router)
app.include_router(families_router)
app.include_router(budget_router)
app.include_router(income_router)
app.include_router(payments_router)
app.include_router(reports_router)
app.include_router(accounts_router)
