from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .admin_routes import router as admin_router
from .config import RATE_LIMIT_PER_MINUTE
from .errors import RentalError
from .middleware import RateLimitMiddleware, RequestLoggingMiddleware
from .publisher import publisher
from .routes import router

OPENAPI_TAGS = [
    {"name": "System", "description": "Operational endpoints."},
    {"name": "Auth", "description": "Registration and token issuing."},
    {"name": "Cars", "description": "Public car catalog and search."},
    {"name": "Bookings", "description": "Booking requests and completion for the signed-in user."},
    {"name": "Admin", "description": "Inventory, booking, user management and analytics."},
]

app = FastAPI(title="Rental Service", openapi_tags=OPENAPI_TAGS)

app.add_middleware(RateLimitMiddleware, max_per_minute=RATE_LIMIT_PER_MINUTE)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(router)
app.include_router(admin_router)


@app.exception_handler(RentalError)
async def rental_error_handler(request: Request, exc: RentalError):
    content = {"detail": exc.detail, "code": type(exc).__name__}
    errors = getattr(exc, "errors", None)
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    request_id = getattr(request.state, "request_id", None)
    print(f"[rental-service] database error request_id={request_id}: {exc!r}")
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


@app.get("/health", tags=["System"])
async def health():
    return {
        "status": "ok",
        "service": "rental-service",
        "events_enabled": publisher.enabled,
    }


@app.on_event("startup")
async def startup():
    # Never crash service if RabbitMQ is temporarily unavailable
    try:
        await publisher.connect()
    except Exception as e:
        print(f"[rental-service] RabbitMQ connect failed at startup; continuing without events: {e}")


@app.on_event("shutdown")
async def shutdown():
    try:
        await publisher.close()
    except Exception as e:
        print(f"[rental-service] RabbitMQ close failed: {e}")
