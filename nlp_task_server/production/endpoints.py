"""One endpoint per task kind, shared by the gRPC server, the HTTP gateway and the clients.

An endpoint ties together the RPC service/method name, the HTTP path, the
request/response schemas and the in-process call that serves a request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from nlp_task_server.data.schema import (
    AnswerRequest,
    AnswerResponse,
    ClassificationResponse,
    EncodingRequest,
    EncodingResponse,
    GenerationRequest,
    GenerationResponse,
    LanguageModelingRequest,
    LanguageModelingResponse,
    TextClassificationRequest,
    TokenClassificationRequest,
    TokenClassificationResponse,
    WireModel,
    ZeroShotRequest,
)
from nlp_task_server.tasks.base import (
    CAPABILITIES,
    LanguageModeler,
    QuestionAnswerer,
    TaskKind,
    TextClassifier,
    TextEncoder,
    TextGenerator,
    TokenClassifier,
    ZeroShotClassifier,
)


@dataclass(frozen=True)
class Endpoint:
    """Service with one primary method for one task kind."""

    kind: TaskKind
    service: str
    method: str
    http_path: str
    request_model: type[WireModel]
    response_model: type[WireModel]
    invoke: Callable[[Any, Any], WireModel]

    @property
    def capability(self) -> type:
        return CAPABILITIES[self.kind]

    @property
    def rpc_path(self) -> str:
        """Fully-qualified gRPC method path."""
        return f"/{self.service}/{self.method}"


def _encode(task: TextEncoder, request: EncodingRequest) -> EncodingResponse:
    return task.encode(request.input, request.pooling_strategy)


def _classify_tokens(
    task: TokenClassifier, request: TokenClassificationRequest
) -> TokenClassificationResponse:
    return task.classify(request.input, request.options)


def _answer(task: QuestionAnswerer, request: AnswerRequest) -> AnswerResponse:
    return task.answer(request.question, request.passage, request.options)


def _classify_zero_shot(task: ZeroShotClassifier, request: ZeroShotRequest) -> ClassificationResponse:
    return task.classify(request.input, request.options)


def _classify_text(task: TextClassifier, request: TextClassificationRequest) -> ClassificationResponse:
    return task.classify(request.input)


def _generate(task: TextGenerator, request: GenerationRequest) -> GenerationResponse:
    return task.generate(request.input, request.options)


def _fill_mask(
    task: LanguageModeler, request: LanguageModelingRequest
) -> LanguageModelingResponse:
    return task.predict(request.input, request.options)


ENDPOINTS: dict[TaskKind, Endpoint] = {
    TaskKind.TEXT_ENCODING: Endpoint(
        kind=TaskKind.TEXT_ENCODING,
        service="nlp.textencoding.v1.TextEncodingService",
        method="Encode",
        http_path="/v1/encode",
        request_model=EncodingRequest,
        response_model=EncodingResponse,
        invoke=_encode,
    ),
    TaskKind.TOKEN_CLASSIFICATION: Endpoint(
        kind=TaskKind.TOKEN_CLASSIFICATION,
        service="nlp.tokenclassification.v1.TokenClassificationService",
        method="Classify",
        http_path="/v1/classify-tokens",
        request_model=TokenClassificationRequest,
        response_model=TokenClassificationResponse,
        invoke=_classify_tokens,
    ),
    TaskKind.QUESTION_ANSWERING: Endpoint(
        kind=TaskKind.QUESTION_ANSWERING,
        service="nlp.questionanswering.v1.QuestionAnsweringService",
        method="Answer",
        http_path="/v1/answer",
        request_model=AnswerRequest,
        response_model=AnswerResponse,
        invoke=_answer,
    ),
    TaskKind.ZERO_SHOT_CLASSIFICATION: Endpoint(
        kind=TaskKind.ZERO_SHOT_CLASSIFICATION,
        service="nlp.zeroshot.v1.ZeroShotClassificationService",
        method="Classify",
        http_path="/v1/classify-zero-shot",
        request_model=ZeroShotRequest,
        response_model=ClassificationResponse,
        invoke=_classify_zero_shot,
    ),
    TaskKind.TEXT_CLASSIFICATION: Endpoint(
        kind=TaskKind.TEXT_CLASSIFICATION,
        service="nlp.textclassification.v1.TextClassificationService",
        method="Classify",
        http_path="/v1/classify-text",
        request_model=TextClassificationRequest,
        response_model=ClassificationResponse,
        invoke=_classify_text,
    ),
    TaskKind.TEXT_GENERATION: Endpoint(
        kind=TaskKind.TEXT_GENERATION,
        service="nlp.textgeneration.v1.TextGenerationService",
        method="Generate",
        http_path="/v1/generate",
        request_model=GenerationRequest,
        response_model=GenerationResponse,
        invoke=_generate,
    ),
    TaskKind.LANGUAGE_MODELING: Endpoint(
        kind=TaskKind.LANGUAGE_MODELING,
        service="nlp.languagemodeling.v1.LanguageModelingService",
        method="Predict",
        http_path="/v1/fill-mask",
        request_model=LanguageModelingRequest,
        response_model=LanguageModelingResponse,
        invoke=_fill_mask,
    ),
}
