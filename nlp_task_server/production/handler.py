"""Single dispatch point used by every transport."""

from __future__ import annotations

import logging

from nlp_task_server.data.schema import WireModel
from nlp_task_server.errors import UnsupportedTaskError
from nlp_task_server.production.endpoints import ENDPOINTS, Endpoint
from nlp_task_server.utils.cancellation import check_cancelled
from nlp_task_server.utils.logging import get_logger


class RequestHandler:
    """Serves requests of the loaded task's endpoint."""

    def __init__(self, task, endpoint: Endpoint, logger: logging.Logger | None = None) -> None:
        if not isinstance(task, endpoint.capability):
            raise UnsupportedTaskError(f"{type(task).__name__} cannot serve {endpoint.service}")
        self.task = task
        self.endpoint = endpoint
        self.logger = get_logger(__name__, logger)

    def handle(self, request: WireModel) -> WireModel:
        if not isinstance(request, self.endpoint.request_model):
            raise UnsupportedTaskError(
                f"{type(request).__name__} is not supported by this server instance "
                f"(serving {self.endpoint.service})"
            )
        check_cancelled()
        self.logger.debug("dispatching %s", self.endpoint.rpc_path)
        return self.endpoint.invoke(self.task, request)


def resolve_request_handler(task, logger: logging.Logger | None = None) -> RequestHandler:
    """Handler for the endpoint whose capability ``task`` implements."""
    for endpoint in ENDPOINTS.values():
        if isinstance(task, endpoint.capability):
            return RequestHandler(task, endpoint, logger)
    raise UnsupportedTaskError(f"no endpoint serves {type(task).__name__}")
