"""FastAPI gateway transcoding HTTP/JSON to the loaded task's endpoint."""

from __future__ import annotations

import inspect
from typing import Callable

import anyio.from_thread
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from nlp_task_server.errors import (
    InvalidRequestError,
    TaskServerError,
    UnsupportedTaskError,
    error_body,
    status_for,
)
from nlp_task_server.production.endpoints import ENDPOINTS, Endpoint
from nlp_task_server.production.handler import RequestHandler
from nlp_task_server.utils import cancellation


def _still_connected(request: Request) -> Callable[[], bool]:
    """Cancellation signal for a sync route running in the worker thread pool."""

    def is_active() -> bool:
        return not anyio.from_thread.run(request.is_disconnected)

    return is_active


def _typed_route(handler: RequestHandler):
    """Route function whose signature is derived from the endpoint schemas."""
    endpoint = handler.endpoint

    def serve(payload, request: Request):
        with cancellation.bind(_still_connected(request)):
            return handler.handle(payload)

    serve.__signature__ = inspect.Signature(
        [
            inspect.Parameter(
                "payload",
                inspect.Parameter.POSITIONAL_OR_KEYWORD,
                annotation=endpoint.request_model,
            ),
            inspect.Parameter(
                "request", inspect.Parameter.POSITIONAL_OR_KEYWORD, annotation=Request
            ),
        ],
        return_annotation=endpoint.response_model,
    )
    serve.__doc__ = f"{endpoint.service}/{endpoint.method}"
    return serve


def _unsupported_route(endpoint: Endpoint):
    def unsupported() -> None:
        raise UnsupportedTaskError(
            f"{endpoint.http_path} is not supported by this server instance"
        )

    return unsupported


def create_app(handler: RequestHandler) -> FastAPI:
    """Create FastAPI application instance."""
    app = FastAPI(title="NLP Task Server", version="0.1.0")
    served = handler.endpoint

    @app.exception_handler(TaskServerError)
    async def task_error(request: Request, error: TaskServerError) -> JSONResponse:
        return JSONResponse(status_code=status_for(error).http_status, content=error_body(error))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, error: RequestValidationError) -> JSONResponse:
        invalid = InvalidRequestError(f"invalid request: {error.errors()}")
        return JSONResponse(status_code=status_for(invalid).http_status, content=error_body(invalid))

    @app.get("/health")
    def health() -> dict[str, str]:
        """Healthcheck endpoint."""
        return {"status": "ok", "task": served.kind.value}

    app.add_api_route(
        served.http_path,
        _typed_route(handler),
        methods=["POST"],
        response_model=served.response_model,
        name=f"{served.kind.value}.{served.method}",
    )
    for endpoint in ENDPOINTS.values():
        if endpoint.http_path != served.http_path:
            app.add_api_route(
                endpoint.http_path,
                _unsupported_route(endpoint),
                methods=["POST"],
                status_code=501,
                include_in_schema=False,
            )
    return app
