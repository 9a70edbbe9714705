"""Tests for the standardized logging helpers."""

from unittest.mock import Mock

from tradechat_app.logging.config import (
    configure_logging,
    get_render_logger,
    get_stream_logger,
    log_stream_completion,
    log_trade_call_extraction,
)


class TestLoggingHelpers:
    """Test event shapes emitted by the logging helpers."""

    def setup_method(self):
        """Set up a mock logger capturing bound fields."""
        configure_logging(level="DEBUG", format_json=True)
        self.logger = Mock()
        self.bound = self.logger.bind.return_value

    def test_clean_stream_completion(self):
        """Test a stream without discarded frames logs at info level."""
        log_stream_completion(self.logger, turn_id="t1", frames_parsed=10, frames_discarded=0,
                              content_chars=120, elapsed_ms=153.27)

        kwargs = self.logger.bind.call_args.kwargs
        assert kwargs["turn_id"] == "t1"
        assert kwargs["elapsed_ms"] == 153.3
        self.bound.info.assert_called_once_with("Stream completed")
        self.bound.warning.assert_not_called()

    def test_stream_completion_with_discards(self):
        """Test discarded frames raise the event to a warning."""
        log_stream_completion(self.logger, turn_id="t1", frames_parsed=8, frames_discarded=2,
                              content_chars=90, elapsed_ms=10.0)

        self.bound.warning.assert_called_once_with("Stream completed with discarded frames")

    def test_stream_completion_context(self):
        """Test extra context is bound as a nested field."""
        log_stream_completion(self.logger, turn_id="t1", frames_parsed=1, frames_discarded=0,
                              content_chars=1, elapsed_ms=1.0, context={"model": "montra-32b"})

        self.bound.bind.assert_called_once_with(context={"model": "montra-32b"})
        self.bound.bind.return_value.info.assert_called_once_with("Stream completed")

    def test_trade_call_extraction(self):
        """Test extraction outcomes are tagged FOUND or ABSENT."""
        log_trade_call_extraction(self.logger, turn_id="t2", found=True, fields=["direction", "entry"])
        assert self.logger.bind.call_args.kwargs["trade_call"] == "FOUND"
        assert self.logger.bind.call_args.kwargs["fields"] == ["direction", "entry"]

        log_trade_call_extraction(self.logger, turn_id="t3", found=False)
        assert self.logger.bind.call_args.kwargs["trade_call"] == "ABSENT"
        assert self.logger.bind.call_args.kwargs["fields"] == []

    def test_component_loggers(self):
        """Test component loggers can be created and used."""
        get_stream_logger("tests").info("stream event", turn_id="t4")
        get_render_logger("tests").debug("render event")
