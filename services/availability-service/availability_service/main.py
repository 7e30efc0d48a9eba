import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from shared.errors import StoreError
from shared.logging import setup_logging
from shared.middleware import RequestLoggingMiddleware

from .config import LOG_LEVEL, SERVICE_NAME
from .rabbitmq import publisher
from .redis_client import redis_client
from .routes import router

setup_logging(SERVICE_NAME, LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Availability Service")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(router)


@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("store failure on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": "Availability store unavailable"})


@app.get("/health")
async def health():
    return {"status": "ok", "service": SERVICE_NAME, "events_enabled": publisher.enabled}


@app.on_event("startup")
async def startup():
    try:
        await publisher.connect()
    except Exception as e:
        logger.warning("RabbitMQ connect failed at startup; continuing: %s", e)


@app.on_event("shutdown")
async def shutdown():
    await publisher.close()
    await redis_client.aclose()
