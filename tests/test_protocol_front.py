from __future__ import annotations

import threading
import time

import anyio.to_thread
import grpc
import numpy as np
import pytest
from fastapi.testclient import TestClient

from nlp_task_server.data.schema import (
    ClassificationResponse,
    EncodingRequest,
    LanguageModelingOptions,
    TextClassificationRequest,
)
from nlp_task_server.errors import (
    InputTooLong,
    InvalidRequestError,
    RequestCancelled,
    TransportError,
    UnsupportedTaskError,
)
from nlp_task_server.production import client as client_module
from nlp_task_server.production.api import _still_connected, create_app
from nlp_task_server.production.client import (
    GrpcTransport,
    HttpTransport,
    LanguageModelingClient,
    TextClassificationClient,
    TextEncodingClient,
    connect,
)
from nlp_task_server.production.endpoints import ENDPOINTS
from nlp_task_server.production.grpc_server import build_grpc_server
from nlp_task_server.production.handler import RequestHandler, resolve_request_handler
from nlp_task_server.tasks.base import TaskKind, TextClassifier
from nlp_task_server.tasks.languagemodeling import BertLanguageModeling
from nlp_task_server.tasks.textclassification import BertTextClassification
from nlp_task_server.utils import cancellation

from conftest import BERT_VOCAB, fixed_logits

SENTIMENT_CONFIG = {
    "model_type": "bert",
    "max_position_embeddings": 6,
    "id2label": {"0": "negative", "1": "positive"},
}


@pytest.fixture
def handler(make_resources) -> RequestHandler:
    resources, _ = make_resources(fixed_logits([0.0, 2.0]), config=SENTIMENT_CONFIG)
    return resolve_request_handler(BertTextClassification(resources))


@pytest.fixture
def grpc_target(handler):
    server, port = build_grpc_server(handler, "127.0.0.1:0", max_workers=2)
    server.start()
    yield f"127.0.0.1:{port}"
    server.stop(0).wait()


@pytest.fixture
def http_client(handler) -> TestClient:
    return TestClient(create_app(handler))


LONG_TEXT = "alice moved to paris , alice moved"


# In-process dispatch


def test_resolve_request_handler_picks_the_matching_endpoint(handler):
    assert handler.endpoint is ENDPOINTS[TaskKind.TEXT_CLASSIFICATION]
    response = handler.handle(TextClassificationRequest(input="alice"))
    assert response.results[0].label == "positive"


def test_handler_rejects_other_capabilities(handler):
    with pytest.raises(UnsupportedTaskError):
        handler.handle(EncodingRequest(input="alice"))
    with pytest.raises(UnsupportedTaskError):
        resolve_request_handler(object())
    with pytest.raises(UnsupportedTaskError):
        RequestHandler(handler.task, ENDPOINTS[TaskKind.TEXT_ENCODING])


def test_handler_stops_cancelled_requests(handler):
    with cancellation.bind(lambda: False):
        with pytest.raises(RequestCancelled):
            handler.handle(TextClassificationRequest(input="alice"))


def test_endpoint_paths_are_unique():
    rpc_paths = {endpoint.rpc_path for endpoint in ENDPOINTS.values()}
    http_paths = {endpoint.http_path for endpoint in ENDPOINTS.values()}
    assert len(rpc_paths) == len(http_paths) == len(TaskKind)


# gRPC


def test_grpc_client_matches_in_process_result(handler, grpc_target):
    remote = TextClassificationClient(GrpcTransport(grpc_target))
    assert isinstance(remote, TextClassifier)
    response = remote.classify("alice")
    assert isinstance(response, ClassificationResponse)
    assert response == handler.task.classify("alice")


def test_grpc_unsupported_endpoint(grpc_target):
    remote = connect(TaskKind.TEXT_ENCODING, GrpcTransport(grpc_target))
    assert isinstance(remote, TextEncodingClient)
    with pytest.raises(UnsupportedTaskError, match="not supported by this server instance"):
        remote.encode("alice")


def test_grpc_input_too_long(grpc_target):
    with pytest.raises(InputTooLong):
        TextClassificationClient(GrpcTransport(grpc_target)).classify(LONG_TEXT)


def test_grpc_invalid_payload(grpc_target):
    endpoint = ENDPOINTS[TaskKind.TEXT_CLASSIFICATION]
    with grpc.insecure_channel(grpc_target) as channel:
        method = channel.unary_unary(endpoint.rpc_path)
        with pytest.raises(grpc.RpcError) as raised:
            method(b'{"wrong": 1}', timeout=5)
    assert raised.value.code() == grpc.StatusCode.INVALID_ARGUMENT


def test_grpc_dial_failure_is_a_transport_error():
    remote = TextClassificationClient(GrpcTransport("127.0.0.1:1", timeout=2.0))
    with pytest.raises(TransportError):
        remote.classify("alice")


def test_grpc_transport_has_a_default_deadline():
    assert GrpcTransport("127.0.0.1:1").timeout == 30.0


def test_grpc_deadline_cancels_the_running_request(make_resources):
    outcome = {}
    done = threading.Event()

    def slow_forward(ids, segments):
        time.sleep(0.6)
        return {"logits": np.asarray([[0.0, 2.0]])}

    resources, _ = make_resources(slow_forward, config=SENTIMENT_CONFIG)
    task = BertTextClassification(resources)

    class Recording(TextClassifier):
        def classify(self, text):
            try:
                return task.classify(text)
            except RequestCancelled:
                outcome["cancelled"] = True
                raise
            finally:
                done.set()

    server, port = build_grpc_server(resolve_request_handler(Recording()), "127.0.0.1:0")
    server.start()
    try:
        remote = TextClassificationClient(GrpcTransport(f"127.0.0.1:{port}", timeout=0.3))
        with pytest.raises(TransportError) as raised:
            remote.classify("alice")
        assert raised.value.code == grpc.StatusCode.DEADLINE_EXCEEDED
        assert done.wait(5)
    finally:
        server.stop(0).wait()
    assert outcome == {"cancelled": True}


# HTTP gateway


def test_health(http_client):
    response = http_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "task": "text_classification"}


def test_http_route_serves_the_loaded_task(http_client):
    response = http_client.post("/v1/classify-text", json={"input": "alice"})
    assert response.status_code == 200
    results = response.json()["results"]
    assert [result["label"] for result in results] == ["positive", "negative"]


def test_http_errors_carry_status_codes(http_client):
    unsupported = http_client.post("/v1/encode", json={"input": "alice"})
    assert unsupported.status_code == 501
    assert unsupported.json()["code"] == grpc.StatusCode.UNIMPLEMENTED.value[0]

    invalid = http_client.post("/v1/classify-text", json={"text": "alice"})
    assert invalid.status_code == 400
    assert invalid.json()["code"] == grpc.StatusCode.INVALID_ARGUMENT.value[0]

    too_long = http_client.post("/v1/classify-text", json={"input": LONG_TEXT})
    assert too_long.status_code == 400
    assert too_long.json()["code"] == grpc.StatusCode.OUT_OF_RANGE.value[0]


def test_http_client_through_the_gateway(monkeypatch, http_client, handler):
    def post(url, data, headers, timeout):
        return http_client.post(url, content=data, headers=headers)

    monkeypatch.setattr(client_module.requests, "post", post)
    transport = HttpTransport("http://testserver/")

    remote = TextClassificationClient(transport)
    assert remote.classify("alice") == handler.task.classify("alice")
    with pytest.raises(InputTooLong):
        remote.classify(LONG_TEXT)
    with pytest.raises(UnsupportedTaskError):
        TextEncodingClient(transport).encode("alice")


def test_http_disconnect_is_the_cancellation_signal():
    class FakeRequest:
        def __init__(self, disconnected):
            self.disconnected = disconnected

        async def is_disconnected(self):
            return self.disconnected

    async def poll(request):
        return await anyio.to_thread.run_sync(_still_connected(request))

    assert anyio.run(poll, FakeRequest(False)) is True
    assert anyio.run(poll, FakeRequest(True)) is False


def test_http_connection_failure_is_a_transport_error():
    with pytest.raises(TransportError):
        TextClassificationClient(HttpTransport("http://127.0.0.1:1", timeout=2.0)).classify("a")


def test_invalid_options_surface_as_invalid_request(monkeypatch, http_client):
    def post(url, data, headers, timeout):
        return http_client.post(url, content=b"{}", headers=headers)

    monkeypatch.setattr(client_module.requests, "post", post)
    with pytest.raises(InvalidRequestError):
        TextClassificationClient(HttpTransport("http://testserver")).classify("alice")


# Fill-mask


def _favour_paris(ids, segments):
    logits = np.zeros((1, len(ids), len(BERT_VOCAB)))
    logits[:, :, BERT_VOCAB.index("paris")] = 5.0
    return {"logits": logits}


@pytest.fixture
def fill_mask_handler(make_resources) -> RequestHandler:
    resources, _ = make_resources(_favour_paris)
    return resolve_request_handler(BertLanguageModeling(resources))


def test_fill_mask_over_grpc(fill_mask_handler):
    server, port = build_grpc_server(fill_mask_handler, "127.0.0.1:0", max_workers=2)
    server.start()
    try:
        remote = connect(TaskKind.LANGUAGE_MODELING, GrpcTransport(f"127.0.0.1:{port}"))
        assert isinstance(remote, LanguageModelingClient)
        options = LanguageModelingOptions(top_k=3)
        response = remote.predict("alice moved to [MASK]", options)
        assert response == fill_mask_handler.task.predict("alice moved to [MASK]", options)
        assert response.tokens[0].words[0] == "paris"
        with pytest.raises(InvalidRequestError):
            remote.predict("alice moved to paris")
    finally:
        server.stop(0).wait()


def test_fill_mask_over_http(fill_mask_handler):
    http = TestClient(create_app(fill_mask_handler))
    response = http.post("/v1/fill-mask", json={"input": "[MASK] moved", "options": {"topK": 1}})
    assert response.status_code == 200
    [token] = response.json()["tokens"]
    assert (token["start"], token["end"], token["words"]) == (0, 6, ["paris"])
    assert 0.5 < token["scores"][0] < 1.0

    missing = http.post("/v1/fill-mask", json={"input": "alice moved"})
    assert missing.status_code == 400
    assert missing.json()["code"] == grpc.StatusCode.INVALID_ARGUMENT.value[0]
