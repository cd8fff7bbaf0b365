"""
Unit tests for structured component logging.
"""

import structlog
from aiorch.utils.logging import ComponentLogger, bind_request_id, unbind_request_id
from structlog.testing import capture_logs


class TestComponentLogger:
    def test_operation_events(self):
        logger = ComponentLogger("assembler")

        with capture_logs() as logs:
            logger.log_operation_start("build_context", {"chat_id": "chat-1"})
            logger.log_operation_complete("build_context", duration_ms=12.5, details={"memories": 2})

        assert logs[0]["event"] == "build_context_started"
        assert logs[0]["chat_id"] == "chat-1"
        assert logs[1]["event"] == "build_context_completed"
        assert logs[1]["duration_ms"] == 12.5
        assert logs[1]["memories"] == 2
        assert all(entry["component"] == "assembler" for entry in logs)

    def test_operation_error(self):
        logger = ComponentLogger("orchestrator")

        with capture_logs() as logs:
            logger.log_operation_error("orchestration", ValueError("bad"), {"chat_id": "c"})

        (entry,) = logs
        assert entry["event"] == "orchestration_failed"
        assert entry["log_level"] == "error"
        assert entry["error_type"] == "ValueError"
        assert entry["error_message"] == "bad"

    def test_log_event_level(self):
        with capture_logs() as logs:
            ComponentLogger("tool_loop").log_event("tool_loop_stopped", level="warning", iterations=3)

        assert logs == [
            {"event": "tool_loop_stopped", "log_level": "warning", "component": "tool_loop", "iterations": 3}
        ]


def test_request_id_binding():
    bind_request_id("orch-123")
    try:
        assert structlog.contextvars.get_contextvars()["request_id"] == "orch-123"
    finally:
        unbind_request_id()

    assert "request_id" not in structlog.contextvars.get_contextvars()
