"""
Unit tests for method dispatch and the middleware pipeline.
"""

import json
import logging
from pathlib import Path

import pytest

from formserver.dispatcher import Dispatcher
from formserver.handlers import FormHandler, StaticFileHandler
from formserver.http.response import ResponseBuilder
from formserver.http.status_codes import HTTPStatus
from formserver.middleware import LoggingMiddleware, Middleware, MiddlewarePipeline
from formserver.storage import SubmissionStore


@pytest.fixture
def make_dispatcher(docroot: Path, store_path: Path):
    def _make(legacy: bool = False) -> Dispatcher:
        return Dispatcher(
            StaticFileHandler(docroot, legacy_responses=legacy),
            FormHandler(SubmissionStore(store_path)),
            legacy_responses=legacy,
        )
    return _make


class TestDispatcher:
    """Tests for Dispatcher.dispatch."""

    def test_get_goes_to_static(self, make_dispatcher, make_request):
        response = make_dispatcher().dispatch(make_request("GET", "/index.html"))

        assert response.status == HTTPStatus.OK
        assert response.content_type == "text/html"

    def test_post_goes_to_form_for_any_target(self, make_dispatcher, make_request, store_path):
        response = make_dispatcher().dispatch(
            make_request("POST", "/does/not/matter.html", b"title=T&content=C")
        )

        assert response.status == HTTPStatus.OK
        assert store_path.read_text(encoding="utf-8") == "Title: T\nContent: C"

    @pytest.mark.parametrize("token", ["PUT", "DELETE", "get", ""])
    def test_unknown_method_is_405(self, make_dispatcher, make_request, token):
        response = make_dispatcher().dispatch(make_request(token, "/"))

        assert response.status == HTTPStatus.METHOD_NOT_ALLOWED
        assert response.headers["Allow"] == "GET, POST"

    def test_unknown_method_legacy_is_silent(self, make_dispatcher, make_request):
        assert make_dispatcher(legacy=True).dispatch(make_request("DELETE", "/")) is None


class RecordingMiddleware(Middleware):
    def __init__(self, name: str, calls: list):
        self._name = name
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(f"{self._name}:before")
        response = next(request)
        self.calls.append(f"{self._name}:after")
        return response


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline ordering."""

    def test_first_added_is_outermost(self, make_request):
        calls = []
        pipeline = MiddlewarePipeline()
        pipeline.use(RecordingMiddleware("a", calls), RecordingMiddleware("b", calls))

        def handler(request):
            calls.append("handler")
            return ResponseBuilder().text("ok").build()

        pipeline.wrap(handler)(make_request())

        assert calls == ["a:before", "b:before", "handler", "b:after", "a:after"]
        assert len(pipeline) == 2

    def test_empty_pipeline_is_the_handler(self, make_request):
        def handler(request):
            return None

        assert MiddlewarePipeline().wrap(handler) is handler


class TestLoggingMiddleware:
    """Tests for access logging."""

    def test_text_line(self, make_request, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="formserver.access"):
            middleware(make_request("GET", "/index.html"), lambda r: ResponseBuilder().text("hi").build())

        line = caplog.records[-1].getMessage()
        assert '"GET /index.html" 200 2' in line
        assert line.startswith("127.0.0.1 - - [")

    def test_json_line(self, make_request, caplog):
        middleware = LoggingMiddleware(log_format="json")

        with caplog.at_level(logging.INFO, logger="formserver.access"):
            middleware(make_request("POST", "/submit"), lambda r: ResponseBuilder().text("abc").build())

        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["method"] == "POST"
        assert entry["target"] == "/submit"
        assert entry["status_code"] == 200
        assert entry["content_length"] == 3

    def test_dropped_request(self, make_request, caplog):
        middleware = LoggingMiddleware()

        with caplog.at_level(logging.INFO, logger="formserver.access"):
            response = middleware(make_request("DELETE", "/"), lambda r: None)

        assert response is None
        assert '"DELETE /" - 0' in caplog.records[-1].getMessage()

    def test_handler_error_is_logged_and_reraised(self, make_request, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.INFO, logger="formserver.access"):
            with pytest.raises(RuntimeError):
                LoggingMiddleware()(make_request("GET", "/"), broken)

        assert caplog.records[-1].levelno == logging.ERROR
        assert "RuntimeError: boom" in caplog.records[-1].getMessage()
