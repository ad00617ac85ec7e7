"""Entry point for the transfer service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from common.logging_config import setup_logging
from server.config import SERVICE_HOST, SERVICE_PORT
from server.database import init_database
from server.exceptions import (
    TransferServiceError,
    AuthRequiredError,
    AuthInvalidError,
    TransferNotFoundError,
    BadRequestError,
    StoreUnavailableError,
    StreamAbortedError,
    NotAuthenticatedError,
    ForbiddenError,
    InvalidGrantError,
)
from server.routes.transfer_routes import router as transfer_router
from server.routes.download_routes import router as download_router
from server.routes.storage_routes import router as storage_router

logger = setup_logging('server')

app = FastAPI(
    title="SendShare Transfer Service",
    description="Signed-URL file transfers with password-gated listing and streaming ZIP download",
    version="1.0.0"
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(
        f"Request started: {request.method} {request.url.path} [request_id={request_id}]"
    )

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Initialize database on application startup.
    """
    logger.info("Transfer service starting up...")

    init_database()
    logger.info("Database initialized")


def _error_response(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, "code": code})


@app.exception_handler(AuthRequiredError)
async def auth_required_handler(request: Request, exc: AuthRequiredError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(f"Password required: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc), "PASSWORD_REQUIRED")


@app.exception_handler(AuthInvalidError)
async def auth_invalid_handler(request: Request, exc: AuthInvalidError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Invalid password: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc), "INVALID_PASSWORD")


@app.exception_handler(NotAuthenticatedError)
async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Not authenticated: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_401_UNAUTHORIZED, str(exc), "NOT_AUTHENTICATED")


@app.exception_handler(ForbiddenError)
async def forbidden_handler(request: Request, exc: ForbiddenError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Forbidden: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc), "FORBIDDEN")


@app.exception_handler(InvalidGrantError)
async def invalid_grant_handler(request: Request, exc: InvalidGrantError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Invalid storage grant: {exc} [request_id={request_id}]")
    return _error_response(status.HTTP_403_FORBIDDEN, str(exc), "INVALID_GRANT")


@app.exception_handler(TransferNotFoundError)
async def not_found_handler(request: Request, exc: TransferNotFoundError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.info(f"Not found: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_404_NOT_FOUND, str(exc), "NOT_FOUND")


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Bad request: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_400_BAD_REQUEST, str(exc), "BAD_REQUEST")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.warning(f"Request validation failed [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_400_BAD_REQUEST, "Invalid request", "BAD_REQUEST")


@app.exception_handler(StoreUnavailableError)
async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Store unavailable: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Storage unavailable", "STORE_UNAVAILABLE")


@app.exception_handler(StreamAbortedError)
async def stream_aborted_handler(request: Request, exc: StreamAbortedError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(f"Stream aborted: {exc} [request_id={request_id}] path={request.url.path}")
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Download failed", "STREAM_ABORTED")


@app.exception_handler(TransferServiceError)
async def transfer_service_error_handler(request: Request, exc: TransferServiceError):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Transfer service error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, 'request_id', 'unknown')
    logger.error(
        f"Unexpected error: {exc} [request_id={request_id}] path={request.url.path}",
        exc_info=True
    )
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", "INTERNAL_ERROR")


app.include_router(transfer_router)
app.include_router(download_router)
app.include_router(storage_router)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "SendShare Transfer API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for container healthchecks.
    Returns 200 if service is alive.
    """
    return {"status": "healthy", "service": "transfer"}


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    uvicorn.run(
        "server.main:app",
        host=SERVICE_HOST,
        port=SERVICE_PORT,
    )


if __name__ == "__main__":
    main()
