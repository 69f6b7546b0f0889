"""Tests for imgopt.error_handling."""

import logging

import pytest

from imgopt.error_handling import (
    ConfigurationError,
    ErrorLevel,
    ImageOptimizationError,
    ToolExecutionError,
    ToolNotFoundError,
    ToolTimeoutError,
    error_context,
    handle_error,
    stderr_excerpt,
)


class TestErrorTypes:
    """Tests for the error taxonomy."""

    @pytest.mark.fast
    def test_execution_error_message_is_exact(self):
        error = ToolExecutionError("pngout", "/srv/img/logo.png", 2, "bad chunk")
        assert str(error) == 'Error while optimizing the file "/srv/img/logo.png"'
        assert error.exit_code == 2
        assert error.stderr == "bad chunk"
        assert error.context["tool"] == "pngout"

    @pytest.mark.fast
    def test_timeout_error_message_is_exact(self):
        error = ToolTimeoutError("gifsicle", "/srv/img/a.gif", 60)
        assert str(error) == 'Error while optimizing the file "/srv/img/a.gif"'
        assert error.timeout == 60

    @pytest.mark.fast
    def test_tool_not_found(self):
        error = ToolNotFoundError("advpng", "/opt/tools/advpng")
        assert "advpng" in str(error)
        assert isinstance(error, ImageOptimizationError)

    @pytest.mark.fast
    def test_cause_is_rendered(self):
        error = ImageOptimizationError("copy failed", cause=OSError("disk full"))
        assert str(error) == "copy failed (caused by: disk full)"


class TestHelpers:
    """Tests for handle_error and error_context."""

    @pytest.mark.fast
    def test_handle_error_without_reraise(self, caplog):
        with caplog.at_level(logging.WARNING):
            error = handle_error(
                ValueError("bad"),
                "read header",
                ConfigurationError,
                level=ErrorLevel.WARNING,
                reraise=False,
            )
        assert isinstance(error, ConfigurationError)
        assert error.context["original_error_type"] == "ValueError"
        assert "Read header failed: bad" in caplog.text

    @pytest.mark.fast
    def test_error_context_wraps(self):
        with pytest.raises(ImageOptimizationError) as exc_info:
            with error_context("copy file", context={"file": "a.png"}):
                raise OSError("gone")
        assert exc_info.value.context["file"] == "a.png"
        assert isinstance(exc_info.value.cause, OSError)

    @pytest.mark.fast
    def test_error_context_passes_library_errors_through(self):
        original = ToolTimeoutError("cwebp", "/a.png", 5)
        with pytest.raises(ToolTimeoutError) as exc_info:
            with error_context("encode"):
                raise original
        assert exc_info.value is original

    @pytest.mark.fast
    def test_stderr_excerpt(self):
        assert stderr_excerpt(None) == ""
        assert stderr_excerpt(b"line one\n  line two\n") == "line one line two"
        long = stderr_excerpt("x" * 1000, max_length=20)
        assert len(long) == 20
        assert long.endswith("...")
