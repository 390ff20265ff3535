# Sous Chef API Main Entry Point
import logging
import sys
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from .errors import EmptyInput, InvalidArgument, NotFound, OutOfRange, StoreError, ValidationError
from .settings import settings
from .routers.recipes import router as recipes_router
from .routers.units import router as units_router
from .routers.shopping import router as shopping_router

# Configure structured logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("souschef")

# Rate limiter (per-IP)
limiter = Limiter(key_func=get_remote_address, default_limits=["100/minute"])

app = FastAPI(title="Sous Chef API", version="0.1.0")
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Domain errors -> HTTP ---
# IntegrityError has no handler: corrupted state surfaces as a 500.

@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "errors": [{"field": e.field, "message": e.message} for e in exc.errors],
        },
    )


@app.exception_handler(NotFound)
def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(OutOfRange)
@app.exception_handler(InvalidArgument)
@app.exception_handler(EmptyInput)
def bad_request_handler(request: Request, exc: Exception):
    logger.info(f"Rejected request to {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StoreError)
def store_error_handler(request: Request, exc: StoreError):
    logger.warning(f"Store rejected request to {request.url.path}: {exc}")
    return JSONResponse(status_code=409, content={"detail": str(exc)})


app.include_router(recipes_router, prefix="/api/recipes", tags=["recipes"])
app.include_router(units_router, prefix="/api/units", tags=["units"])
app.include_router(shopping_router, prefix="/api/shopping", tags=["shopping"])
