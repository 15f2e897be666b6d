"""Tests for result normalization and error helpers."""

import pytest

from imagen_mcp.errors.exceptions import (
    DEFAULT_FAILURE_MESSAGE,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    ExecutorError,
    NotFoundError,
    ResultFormatError,
    error_message,
)
from imagen_mcp.models.results import (
    MessageResult,
    MultiResourceResult,
    ResourceResult,
    normalize_result,
    primary_output,
)


class TestNormalizeResult:
    def test_single_resource(self):
        result = ResourceResult(uri="file:///out/a.png", path="/out/a.png")
        assert normalize_result(result) == {
            "output_path": "/out/a.png",
            "uri": "file:///out/a.png",
            "mime_type": "image/png",
        }

    def test_resource_without_path_uses_uri(self):
        result = ResourceResult(uri="file:///out/a.png")
        assert normalize_result(result)["output_path"] == "file:///out/a.png"

    def test_multiple_resources(self):
        result = MultiResourceResult(
            uris=["file:///out/a_1.png", "file:///out/a_2.png"],
            paths=["/out/a_1.png", "/out/a_2.png"],
            mime_type="image/jpeg",
        )
        assert normalize_result(result) == {
            "output_paths": ["/out/a_1.png", "/out/a_2.png"],
            "uris": ["file:///out/a_1.png", "file:///out/a_2.png"],
            "mime_type": "image/jpeg",
        }

    def test_message(self):
        assert normalize_result(MessageResult(text="done")) == {"message": "done"}

    @pytest.mark.parametrize("value", [None, "text", {"content": []}, 42])
    def test_untagged_values_rejected(self, value):
        with pytest.raises(ResultFormatError, match="Invalid tool result format"):
            normalize_result(value)


class TestPrimaryOutput:
    def test_single(self):
        assert primary_output({"output_path": "/out/a.png"}) == "/out/a.png"

    def test_first_of_many(self):
        assert primary_output({"output_paths": ["/out/a_1.png", "/out/a_2.png"]}) == "/out/a_1.png"

    def test_message_only(self):
        assert primary_output({"message": "done"}) is None

    def test_empty(self):
        assert primary_output(None) is None
        assert primary_output({}) is None


class TestErrors:
    def test_error_message_prefers_mcp_message(self):
        assert error_message(NotFoundError("Job", "job_x")) == "Job not found: job_x"

    def test_error_message_plain_exception(self):
        assert error_message(RuntimeError("boom")) == "boom"

    @pytest.mark.parametrize("exc", [RuntimeError(), RuntimeError("   "), ValueError("")])
    def test_error_message_blank_falls_back(self, exc):
        assert error_message(exc) == DEFAULT_FAILURE_MESSAGE

    @pytest.mark.parametrize(
        "status_code,code",
        [(400, INVALID_PARAMS), (401, INVALID_REQUEST), (403, INVALID_REQUEST), (500, INTERNAL_ERROR), (None, INTERNAL_ERROR)],
    )
    def test_executor_error_codes(self, status_code, code):
        exc = ExecutorError("failed", status_code=status_code)
        assert exc.code == code
        assert exc.status_code == status_code
