"""Runs the gRPC server and the HTTP gateway side by side."""

from __future__ import annotations

import logging
from typing import Any

import grpc
import uvicorn

from nlp_task_server.production.api import create_app
from nlp_task_server.production.grpc_server import DEFAULT_MAX_WORKERS, build_grpc_server
from nlp_task_server.production.handler import RequestHandler
from nlp_task_server.utils.logging import get_logger


class TaskServer:
    """Serves one loaded task over gRPC and, when ``http_port`` is set, over HTTP."""

    def __init__(
        self, handler: RequestHandler, cfg: Any, logger: logging.Logger | None = None
    ) -> None:
        self.handler = handler
        self.cfg = cfg
        self.logger = get_logger(__name__, logger)
        self.grpc_server: grpc.Server | None = None
        self.grpc_port: int | None = None

    @property
    def grace_seconds(self) -> float:
        return float(self.cfg.get("grace_seconds", 5.0))

    def start_grpc(self) -> int:
        address = f"{self.cfg.host}:{self.cfg.grpc_port}"
        self.grpc_server, self.grpc_port = build_grpc_server(
            self.handler,
            address,
            max_workers=int(self.cfg.get("max_workers", DEFAULT_MAX_WORKERS)),
            logger=self.logger,
        )
        self.grpc_server.start()
        self.logger.info("gRPC listening on %s:%d", self.cfg.host, self.grpc_port)
        return self.grpc_port

    def stop(self) -> None:
        if self.grpc_server is not None:
            self.logger.info("stopping gRPC server (grace %.1fs)", self.grace_seconds)
            self.grpc_server.stop(self.grace_seconds).wait()
            self.grpc_server = None

    def serve_forever(self) -> None:
        """Block until interrupted; uvicorn owns signal handling when HTTP is enabled."""
        self.start_grpc()
        try:
            http_port = self.cfg.get("http_port")
            if http_port is None:
                self.grpc_server.wait_for_termination()
                return
            config = uvicorn.Config(
                create_app(self.handler),
                host=str(self.cfg.host),
                port=int(http_port),
                log_config=None,
            )
            self.logger.info("HTTP gateway listening on %s:%d", self.cfg.host, int(http_port))
            uvicorn.Server(config).run()
        finally:
            self.stop()
