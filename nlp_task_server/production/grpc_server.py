"""gRPC transport: JSON payloads over generic unary method handlers."""

from __future__ import annotations

import logging
from concurrent import futures

import grpc
from pydantic import ValidationError

from nlp_task_server.errors import TaskServerError, TransportError, status_for
from nlp_task_server.production.endpoints import ENDPOINTS, Endpoint
from nlp_task_server.production.handler import RequestHandler
from nlp_task_server.utils import cancellation
from nlp_task_server.utils.logging import get_logger

DEFAULT_MAX_WORKERS = 10


def _served_method(handler: RequestHandler, logger: logging.Logger) -> grpc.RpcMethodHandler:
    endpoint = handler.endpoint

    def behavior(payload: bytes, context: grpc.ServicerContext) -> bytes:
        try:
            request = endpoint.request_model.model_validate_json(payload)
        except ValidationError as error:
            context.abort(grpc.StatusCode.INVALID_ARGUMENT, f"invalid request: {error}")
        try:
            with cancellation.bind(context.is_active):
                response = handler.handle(request)
        except TaskServerError as error:
            logger.info("%s failed: %s", endpoint.rpc_path, error)
            context.abort(status_for(error).grpc_code, str(error))
        except Exception as error:
            logger.exception("%s crashed", endpoint.rpc_path)
            context.abort(grpc.StatusCode.INTERNAL, f"internal error: {error}")
        return response.to_wire().encode("utf-8")

    return grpc.unary_unary_rpc_method_handler(behavior)


def _unsupported_method(endpoint: Endpoint) -> grpc.RpcMethodHandler:
    def behavior(payload: bytes, context: grpc.ServicerContext) -> bytes:
        context.abort(
            grpc.StatusCode.UNIMPLEMENTED,
            f"{endpoint.rpc_path} is not supported by this server instance",
        )

    return grpc.unary_unary_rpc_method_handler(behavior)


class UnsupportedEndpoints(grpc.GenericRpcHandler):
    """Answers every known endpoint except the served one with UNIMPLEMENTED."""

    def __init__(self, served: Endpoint) -> None:
        self.endpoints = {
            endpoint.rpc_path: endpoint
            for endpoint in ENDPOINTS.values()
            if endpoint.rpc_path != served.rpc_path
        }

    def service(self, handler_call_details):
        endpoint = self.endpoints.get(handler_call_details.method)
        if endpoint is None:
            return None
        return _unsupported_method(endpoint)


def build_grpc_server(
    handler: RequestHandler,
    address: str,
    max_workers: int = DEFAULT_MAX_WORKERS,
    logger: logging.Logger | None = None,
) -> tuple[grpc.Server, int]:
    """Create (not start) a server for the handler's endpoint; returns it with the bound port."""
    logger = get_logger(__name__, logger)
    endpoint = handler.endpoint
    served = grpc.method_handlers_generic_handler(
        endpoint.service, {endpoint.method: _served_method(handler, logger)}
    )
    server = grpc.server(futures.ThreadPoolExecutor(max_workers=max_workers))
    server.add_generic_rpc_handlers((served, UnsupportedEndpoints(endpoint)))
    port = server.add_insecure_port(address)
    if port == 0:
        raise TransportError(f"could not bind gRPC server to {address}")
    logger.info("gRPC %s bound to port %d", endpoint.rpc_path, port)
    return server, port
