import asyncio
import logging
from contextlib import asynccontextmanager

uvicorn_logger = logging.getLogger("uvicorn")

app_logger = logging.getLogger("app")
app_logger.setLevel(logging.INFO)
app_logger.handlers = uvicorn_logger.handlers
app_logger.propagate = False

from fastapi import FastAPI, HTTPException, status, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import settings
from app.db.base import Base
from app.db.session import engine
from app.api.v1.orders import router as orders_router
from app.api.v1.push import router as push_router
from app.services.simulator import simulate_orders

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Order tables ensured.")

    simulator = None
    if settings.SIMULATE_ORDERS:
        simulator = asyncio.create_task(
            simulate_orders(settings.DEFAULT_RESTAURANT_ID, settings.SIMULATE_INTERVAL_SECONDS)
        )
        logger.info("Order simulator started.")

    yield

    if simulator:
        simulator.cancel()
    await engine.dispose()
    logger.info("Resources cleaned up. Application shutting down.")


app = FastAPI(
    title="Order Dashboard Store",
    description="Order store and live order feed for the restaurant dashboard",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(orders_router)
app.include_router(push_router)


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Invalid order data", "detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )
