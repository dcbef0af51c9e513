import asyncio
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from cinema_booking.api.v1 import routes_booking, routes_health, routes_showtime
from cinema_booking.core.config import settings
from cinema_booking.core.exceptions import BookingError
from cinema_booking.db import session
from cinema_booking.redis import close_redis
from cinema_booking.workers.expiration_sweeper import expiration_sweeper


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )
    if settings.ENV == 'development':
        await session.init_db()

    sweeper_task = None
    if settings.ENABLE_EXPIRATION_SWEEPER:
        sweeper_task = asyncio.create_task(expiration_sweeper.run())
    yield

    if sweeper_task is not None:
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            pass
    await close_redis()
    await session.engine.dispose()


async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logging.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logging.info(f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def unhandled_error_handler(request: Request, exc: Exception):
    logging.error(f"unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={"error": "INTERNAL_ERROR", "message": "An unexpected error occurred",
                 "retryable": False, "details": {}}
    )


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BookingError, booking_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(
        routes_health.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_showtime.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_booking.router,
        prefix=settings.API_V1_PREFIX
    )

    @app.get("/")
    async def root():
        return {"message": "Cinema booking backend is running"}

    return app


app = create_app()
