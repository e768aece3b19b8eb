"""Entry point for the HTTP range server."""

import time
import uuid
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from common.config import Config, default_config_path
from common.exceptions import (
    AuthenticationError,
    ChunkTransferError,
    DistoreError,
    InvariantViolation,
    NetworkError,
    RangeNotSatisfiable,
    UnexpectedRemoteResponse,
)
from common.logging_config import get_logger, setup_component_logging
from engine.file_manager import FileManager
from server.routes import api_router, serve_router

logger = get_logger("server")

app = FastAPI(
    title="Distore",
    description="Range-serving HTTP front end for the chunked virtual file store",
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
        f"Request started: {request.method} {request.url.path} "
        f"range={request.headers.get('range', '-')} [request_id={request_id}]"
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
    Build the FileManager from the configuration file unless one was attached already.
    """
    if getattr(app.state, "file_manager", None) is not None:
        return

    config = Config(default_config_path())
    app.state.file_manager = FileManager.from_config(config)
    logger.info(f"Server ready [config={config.config_path}]")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Close remote client sessions.
    """
    file_manager: Optional[FileManager] = getattr(app.state, "file_manager", None)
    if file_manager is not None:
        await file_manager.close()
        logger.info("Remote clients closed")


def _error_response(
    request: Request,
    exc: Exception,
    status_code: int,
    code: str,
    headers: Optional[dict] = None,
) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    message = f"{code}: {exc} [request_id={request_id}] path={request.url.path}"
    if status_code >= 500:
        logger.error(message, exc_info=exc if status_code == 500 else None)
    else:
        logger.warning(message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code},
        headers=headers,
    )


@app.exception_handler(RangeNotSatisfiable)
async def range_not_satisfiable_handler(request: Request, exc: RangeNotSatisfiable):
    return _error_response(
        request, exc, status.HTTP_416_REQUESTED_RANGE_NOT_SATISFIABLE, "RANGE_NOT_SATISFIABLE",
        headers={"Content-Range": f"bytes */{exc.size}"},
    )


@app.exception_handler(NetworkError)
async def network_error_handler(request: Request, exc: NetworkError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "REMOTE_UNAVAILABLE")


@app.exception_handler(UnexpectedRemoteResponse)
async def unexpected_remote_response_handler(request: Request, exc: UnexpectedRemoteResponse):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "UNEXPECTED_REMOTE_RESPONSE")


@app.exception_handler(ChunkTransferError)
async def chunk_transfer_error_handler(request: Request, exc: ChunkTransferError):
    if isinstance(exc.cause, AuthenticationError):
        return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "DECRYPTION_FAILED")
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "CHUNK_TRANSFER_FAILED")


@app.exception_handler(InvariantViolation)
async def invariant_violation_handler(request: Request, exc: InvariantViolation):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CORRUPT_METADATA")


@app.exception_handler(DistoreError)
async def distore_exception_handler(request: Request, exc: DistoreError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Distore range server", "status": "running"}


app.include_router(api_router)
app.include_router(serve_router)


def run_server(host: Optional[str] = None, port: Optional[int] = None, log_level: Optional[str] = None) -> None:
    """
    Start the range server with uvicorn.

    Host and port default to the configuration file values.
    """
    setup_component_logging(("server", "engine", "clients", "common"), log_level=log_level)

    config = Config(default_config_path())
    config.validate()
    default_host, default_port = config.get_server_address()

    uvicorn.run(
        app,
        host=host or default_host,
        port=port or default_port,
    )


def main() -> None:
    run_server()


if __name__ == "__main__":
    main()
