"""
Tests for the event bus and error helpers.
"""

import logging
from unittest.mock import Mock

import pytest

from leaguedeck.utils.errors import RenderError, error_boundary, safe_execute
from leaguedeck.utils.events import EventEmitter


class TestEventEmitter:
    def test_listeners_called_in_order(self):
        """Test that listeners receive the payload in subscription order"""
        emitter = EventEmitter()
        calls = []
        emitter.on("tick", lambda payload: calls.append(("first", payload)))
        emitter.on("tick", lambda payload: calls.append(("second", payload)))

        assert emitter.emit("tick", 42) == 2
        assert calls == [("first", 42), ("second", 42)]

    def test_failing_listener_does_not_stop_others(self):
        """Test that a raising listener is isolated"""
        emitter = EventEmitter()
        survivor = Mock()
        emitter.on("tick", Mock(side_effect=RuntimeError("boom")))
        emitter.on("tick", survivor)

        emitter.emit("tick", "payload")

        survivor.assert_called_once_with("payload")

    def test_off_and_remove_all(self):
        """Test unsubscribing listeners"""
        emitter = EventEmitter()
        listener = Mock()
        emitter.on("a", listener)
        emitter.on("b", listener)

        emitter.off("a", listener)
        emitter.off("a", listener)  # Not registered anymore, ignored
        assert emitter.listener_count("a") == 0
        assert emitter.listener_count("b") == 1

        emitter.remove_all_listeners()
        assert emitter.emit("b") == 0
        listener.assert_not_called()


class TestErrorHelpers:
    def test_error_boundary_returns_default(self, caplog):
        """Test that error_boundary logs and returns the default"""

        @error_boundary(default_return=-1)
        def explode():
            raise ValueError("bad")

        with caplog.at_level(logging.ERROR):
            assert explode() == -1
        assert "Error in explode: bad" in caplog.text

    def test_error_boundary_reraise(self):
        @error_boundary(reraise=True)
        def explode():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            explode()

    def test_safe_execute_calls_on_error(self):
        on_error = Mock()
        result = safe_execute(lambda: 1 / 0, on_error=on_error, default="fallback")

        assert result == "fallback"
        assert isinstance(on_error.call_args[0][0], ZeroDivisionError)

    @pytest.mark.parametrize(
        "message,terminal",
        [
            ("Key is not alive", True),
            ("Device NOT CONNECTED", True),
            ("socket timeout", False),
        ],
    )
    def test_render_error_classification(self, message, terminal):
        """Test that terminal draw failures are recognised by message"""
        error = RenderError.classify("dev-k1", Exception(message))
        assert error.terminal is terminal
        assert error.message == message

    def test_classify_keeps_render_errors(self):
        original = RenderError("dev-k1", "custom", terminal=True)
        assert RenderError.classify("dev-k1", original) is original
