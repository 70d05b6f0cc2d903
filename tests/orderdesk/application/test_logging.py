import structlog

from orderdesk.utils.logging import bound_context, get_log_level, renderer_for


class TestLogLevel:
    def test_follows_environment(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level("production") == "INFO"
        assert get_log_level("development") == "DEBUG"
        assert get_log_level("test") == "WARNING"

    def test_unknown_environment_defaults_to_info(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert get_log_level("qa") == "INFO"

    def test_log_level_variable_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert get_log_level("development") == "ERROR"


def test_json_rendering_in_production():
    assert isinstance(renderer_for("production"), structlog.processors.JSONRenderer)
    assert isinstance(renderer_for("development"), structlog.dev.ConsoleRenderer)


def test_bound_context_is_reset_on_exit():
    structlog.contextvars.clear_contextvars()
    with bound_context(order_id="ord-1", command="PlaceHold"):
        assert structlog.contextvars.get_contextvars() == {"order_id": "ord-1", "command": "PlaceHold"}
    assert structlog.contextvars.get_contextvars() == {}
