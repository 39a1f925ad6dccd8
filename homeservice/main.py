from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from homeservice.core.config import settings
from homeservice.core.exceptions import BookingError, MissingFields, StoreFailure
from homeservice.api import admin, bookings
from homeservice.core.logger import setup_logging, logger
from homeservice.services.scheduler import scheduler_lifespan
from homeservice.wiring.dependencies import get_booking_service, get_dispatcher, get_reminder_scheduler
from contextlib import asynccontextmanager
from datetime import datetime

setup_logging(level=settings.LOG_LEVEL)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("🚀 Starting Home Service Bookings backend")
    get_booking_service()
    async with scheduler_lifespan(get_reminder_scheduler()):
        yield
    # Shutdown
    await get_dispatcher().drain()
    logger.info("🛑 Shutting down backend")

app = FastAPI(
    title=settings.PROJECT_NAME,
    version="0.1.0",
    lifespan=lifespan
)

def _failure(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, **extra})

@app.exception_handler(StoreFailure)
async def store_failure_handler(request: Request, exc: StoreFailure):
    logger.error(f"🔥 STORE FAILURE on {request.url.path}: {exc.message}")
    return _failure(500, "Server error. Please try again later.")

@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    logger.info(f"⚠️ {type(exc).__name__} on {request.url.path}: {exc.message}")
    extra = {"error": type(exc).__name__}
    if isinstance(exc, MissingFields):
        extra["fields"] = exc.fields
    return _failure(exc.status_code, exc.message, **extra)

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return _failure(exc.status_code, str(exc.detail))

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    return _failure(400, "Invalid request body", fields=fields)

# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"🔥 UNHANDLED ERROR: {str(exc)}")
    return _failure(500, "Internal Server Error")

# Include routers
app.include_router(bookings.router, prefix=settings.API_V1_STR, tags=["Bookings"])
app.include_router(admin.auth_router, prefix=settings.API_V1_STR, tags=["Admin"])
app.include_router(admin.router, prefix=settings.API_V1_STR, tags=["Admin"])

@app.get("/health")
async def health_check():
    return {
        "success": True,
        "message": "ok",
        "environment": settings.ENVIRONMENT,
        "timestamp": datetime.now().isoformat(),
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("homeservice.main:app", host="0.0.0.0", port=settings.PORT, reload=True)
