"""Remote clients with the same method signatures as the in-process tasks.

Each call opens its own connection, applies a bounded deadline and never
retries; remote statuses are raised again as local errors.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import grpc
import requests

from nlp_task_server.data.schema import (
    AnswerRequest,
    AnswerResponse,
    ClassificationResponse,
    EncodingRequest,
    EncodingResponse,
    GenerationOptions,
    GenerationRequest,
    GenerationResponse,
    LanguageModelingOptions,
    LanguageModelingRequest,
    LanguageModelingResponse,
    PoolingStrategy,
    QuestionAnsweringOptions,
    TextClassificationRequest,
    TokenClassificationOptions,
    TokenClassificationRequest,
    TokenClassificationResponse,
    WireModel,
    ZeroShotOptions,
    ZeroShotRequest,
)
from nlp_task_server.errors import ConfigError, TransportError, error_from_grpc, error_from_http
from nlp_task_server.production.endpoints import ENDPOINTS, Endpoint
from nlp_task_server.tasks.base import (
    LanguageModeler,
    QuestionAnswerer,
    TaskKind,
    TextClassifier,
    TextEncoder,
    TextGenerator,
    TokenClassifier,
    ZeroShotClassifier,
)
from nlp_task_server.utils.logging import get_logger

DEFAULT_TIMEOUT_SECONDS = 30.0


class Transport(Protocol):
    def call(self, endpoint: Endpoint, request: WireModel) -> WireModel: ...


class GrpcTransport:
    """JSON payloads over a fresh insecure channel per call."""

    def __init__(
        self,
        target: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.target = target
        self.timeout = timeout
        self.logger = get_logger(__name__, logger)

    def call(self, endpoint: Endpoint, request: WireModel) -> WireModel:
        self.logger.debug("grpc %s -> %s", endpoint.rpc_path, self.target)
        with grpc.insecure_channel(self.target) as channel:
            method = channel.unary_unary(endpoint.rpc_path)
            try:
                payload = method(request.to_wire().encode("utf-8"), timeout=self.timeout)
            except grpc.RpcError as error:
                raise error_from_grpc(error.code(), error.details()) from error
        return endpoint.response_model.model_validate_json(payload)


class HttpTransport:
    """JSON over the HTTP gateway."""

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.logger = get_logger(__name__, logger)

    def call(self, endpoint: Endpoint, request: WireModel) -> WireModel:
        url = f"{self.base_url}{endpoint.http_path}"
        self.logger.debug("http POST %s", url)
        try:
            response = requests.post(
                url,
                data=request.to_wire(),
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except requests.RequestException as error:
            raise TransportError(f"POST {url} failed: {error}") from error
        if response.status_code != 200:
            try:
                body = response.json()
            except ValueError:
                body = {"message": response.text}
            raise error_from_http(response.status_code, body)
        return endpoint.response_model.model_validate_json(response.content)


class _Client:
    kind: TaskKind

    def __init__(self, transport: Transport) -> None:
        self.transport = transport
        self.endpoint = ENDPOINTS[self.kind]

    def _call(self, request: WireModel) -> Any:
        return self.transport.call(self.endpoint, request)


class TextEncodingClient(_Client, TextEncoder):
    kind = TaskKind.TEXT_ENCODING

    def encode(
        self, text: str, pooling_strategy: PoolingStrategy = PoolingStrategy.CLS
    ) -> EncodingResponse:
        return self._call(EncodingRequest(input=text, pooling_strategy=pooling_strategy))


class TokenClassificationClient(_Client, TokenClassifier):
    kind = TaskKind.TOKEN_CLASSIFICATION

    def classify(
        self, text: str, options: TokenClassificationOptions | None = None
    ) -> TokenClassificationResponse:
        options = options or TokenClassificationOptions()
        return self._call(TokenClassificationRequest(input=text, options=options))


class QuestionAnsweringClient(_Client, QuestionAnswerer):
    kind = TaskKind.QUESTION_ANSWERING

    def answer(
        self, question: str, passage: str, options: QuestionAnsweringOptions | None = None
    ) -> AnswerResponse:
        options = options or QuestionAnsweringOptions()
        return self._call(AnswerRequest(question=question, passage=passage, options=options))


class ZeroShotClassificationClient(_Client, ZeroShotClassifier):
    kind = TaskKind.ZERO_SHOT_CLASSIFICATION

    def classify(self, text: str, options: ZeroShotOptions) -> ClassificationResponse:
        return self._call(ZeroShotRequest(input=text, options=options))


class TextClassificationClient(_Client, TextClassifier):
    kind = TaskKind.TEXT_CLASSIFICATION

    def classify(self, text: str) -> ClassificationResponse:
        return self._call(TextClassificationRequest(input=text))


class TextGenerationClient(_Client, TextGenerator):
    kind = TaskKind.TEXT_GENERATION

    def generate(self, text: str, options: GenerationOptions | None = None) -> GenerationResponse:
        options = options or GenerationOptions()
        return self._call(GenerationRequest(input=text, options=options))


class LanguageModelingClient(_Client, LanguageModeler):
    kind = TaskKind.LANGUAGE_MODELING

    def predict(
        self, text: str, options: LanguageModelingOptions | None = None
    ) -> LanguageModelingResponse:
        options = options or LanguageModelingOptions()
        return self._call(LanguageModelingRequest(input=text, options=options))


CLIENTS: dict[TaskKind, type[_Client]] = {
    client.kind: client
    for client in (
        TextEncodingClient,
        TokenClassificationClient,
        QuestionAnsweringClient,
        ZeroShotClassificationClient,
        TextClassificationClient,
        TextGenerationClient,
        LanguageModelingClient,
    )
}


def transport_from_config(cfg: Any, logger: logging.Logger | None = None) -> Transport:
    """Build the transport named by the ``client`` config section."""
    timeout = float(cfg.get("timeout_seconds", DEFAULT_TIMEOUT_SECONDS))
    kind = str(cfg.get("transport", "grpc"))
    if kind == "grpc":
        return GrpcTransport(str(cfg.target), timeout=timeout, logger=logger)
    if kind == "http":
        return HttpTransport(str(cfg.base_url), timeout=timeout, logger=logger)
    raise ConfigError(f"unknown client transport: {kind!r}")


def connect(kind: TaskKind, transport: Transport) -> _Client:
    """Client stub for ``kind`` over ``transport``."""
    return CLIENTS[TaskKind(kind)](transport)
