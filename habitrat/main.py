import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException

load_dotenv()

from habitrat.api import analytics, health, metrics
from habitrat.core.config import settings, validate_config
from habitrat.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from habitrat.core.logging import configure_logging
from habitrat.core.middleware.request_id import RequestIdMiddleware

configure_logging(settings.ENV)
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("habitrat")
    logger.info("Starting HabitRat analytics API...")
    try:
        yield
    finally:
        logging.getLogger("habitrat").info("Stopping HabitRat analytics API...")


app = FastAPI(title="HabitRat - Analytics API", lifespan=lifespan)

app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.include_router(health.router)
app.include_router(metrics.router)
app.include_router(analytics.router)
