from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException
from fastapi.responses import JSONResponse
from .api.routes import api_router
from .config import get_config
from .db import PromptNotFoundError, PromptStoreError
from .services.backend_client import BackendError, BackendUnavailableError
import logging

config = get_config()

# Configure logging
logging.basicConfig(
    level=config.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.StreamHandler(),
    ]
)
logger = logging.getLogger(__name__)

# No CORSMiddleware: the proxy answers its own preflights with 204 and CORS headers
app = FastAPI(title="Voca Dashboard")

app.include_router(api_router, prefix="/api")


def error_body(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse({"error": error, "message": message}, status_code=status_code)


@app.exception_handler(BackendUnavailableError)
async def backend_unavailable_handler(request: Request, exc: BackendUnavailableError):
    return error_body(503, "Backend unavailable", str(exc))


@app.exception_handler(BackendError)
async def backend_error_handler(request: Request, exc: BackendError):
    return error_body(502, "Backend error", str(exc))


@app.exception_handler(PromptNotFoundError)
async def prompt_not_found_handler(request: Request, exc: PromptNotFoundError):
    return error_body(404, "Not found", str(exc))


@app.exception_handler(PromptStoreError)
async def prompt_store_error_handler(request: Request, exc: PromptStoreError):
    return error_body(400, "Prompt store error", str(exc))


def describe_validation_errors(errors) -> str:
    """One line per error, e.g. ``body.phone_number: Field required``."""
    parts = []
    for err in errors:
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = str(err.get("msg", "invalid value"))
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Invalid request on {request.method} {request.url.path}: {exc.errors()}")
    return error_body(422, "Invalid request", describe_validation_errors(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        {"error": "Request failed", "message": str(exc.detail)},
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return error_body(500, "Internal error", str(exc))


@app.get("/")
async def root():
    return {"status": "ok", "upstream": config.api_base_url}


@app.get("/health")
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("voca_dashboard.main:app", host="0.0.0.0", port=config.port, log_level=config.log_level.lower())
