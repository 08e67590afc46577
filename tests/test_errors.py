from __future__ import annotations

import logging

import grpc
import pytest

from nlp_task_server.errors import (
    ConfigError,
    InputTooLong,
    InvalidRequestError,
    RequestCancelled,
    TransportError,
    UnsupportedTaskError,
    VocabularyInvariantViolation,
    error_body,
    error_from_grpc,
    error_from_http,
    status_for,
)
from nlp_task_server.utils import cancellation
from nlp_task_server.utils.tracing import span


@pytest.mark.parametrize(
    "error,grpc_code,http_status",
    [
        (InputTooLong(600, 512), grpc.StatusCode.OUT_OF_RANGE, 400),
        (InvalidRequestError("bad"), grpc.StatusCode.INVALID_ARGUMENT, 400),
        (UnsupportedTaskError("nope"), grpc.StatusCode.UNIMPLEMENTED, 501),
        (ConfigError("broken"), grpc.StatusCode.FAILED_PRECONDITION, 500),
        (VocabularyInvariantViolation("gone"), grpc.StatusCode.INTERNAL, 500),
        (RequestCancelled(), grpc.StatusCode.CANCELLED, 499),
        (TransportError("down"), grpc.StatusCode.UNAVAILABLE, 503),
        (RuntimeError("boom"), grpc.StatusCode.INTERNAL, 500),
    ],
)
def test_status_table(error, grpc_code, http_status):
    status = status_for(error)
    assert status.grpc_code == grpc_code
    assert status.http_status == http_status


def test_input_too_long_message():
    error = InputTooLong(600, 512)
    assert "600 > 512" in str(error)
    assert (error.length, error.limit) == (600, 512)


@pytest.mark.parametrize(
    "code,expected",
    [
        (grpc.StatusCode.OUT_OF_RANGE, InputTooLong),
        (grpc.StatusCode.INVALID_ARGUMENT, InvalidRequestError),
        (grpc.StatusCode.UNIMPLEMENTED, UnsupportedTaskError),
        (grpc.StatusCode.DEADLINE_EXCEEDED, TransportError),
        (grpc.StatusCode.UNAVAILABLE, TransportError),
    ],
)
def test_error_from_grpc(code, expected):
    error = error_from_grpc(code, "details")
    assert type(error) is expected
    assert str(error) == "details"


def test_error_from_grpc_keeps_transport_code():
    error = error_from_grpc(grpc.StatusCode.DEADLINE_EXCEEDED, None)
    assert error.code == grpc.StatusCode.DEADLINE_EXCEEDED
    assert str(error) == "DEADLINE_EXCEEDED"


def test_http_error_body_rebuilds_the_same_kind():
    body = error_body(InputTooLong(10, 5))
    assert body["code"] == grpc.StatusCode.OUT_OF_RANGE.value[0]
    assert isinstance(error_from_http(400, body), InputTooLong)
    assert isinstance(error_from_http(400, error_body(InvalidRequestError("x"))), InvalidRequestError)
    assert isinstance(error_from_http(501, error_body(UnsupportedTaskError("x"))), UnsupportedTaskError)


def test_http_error_without_code_is_a_transport_error():
    error = error_from_http(502, {"detail": "bad gateway"})
    assert type(error) is TransportError
    assert "bad gateway" in str(error)


def test_span_abandons_cancelled_requests():
    logger = logging.getLogger("test")
    with cancellation.bind(lambda: True):
        with span("step", logger):
            pass
    with cancellation.bind(lambda: False):
        with pytest.raises(RequestCancelled):
            with span("step", logger):
                pass
    cancellation.check_cancelled()
