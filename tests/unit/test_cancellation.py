"""Tests for CancellationTokenSource / CancellationToken."""
import pytest
from unittest.mock import MagicMock
from asmbolt.utils.cancellation import CancellationTokenSource
from asmbolt.errors import Cancelled, CompilationFailed


class TestCancellationToken:

    def test_fresh_token_not_cancelled(self):
        source = CancellationTokenSource()
        assert source.token.is_cancellation_requested is False
        source.token.raise_if_cancelled()

    def test_cancel_sets_flag(self):
        source = CancellationTokenSource()
        source.cancel()
        assert source.token.is_cancellation_requested is True

    def test_raise_if_cancelled(self):
        source = CancellationTokenSource()
        source.cancel()
        with pytest.raises(Cancelled):
            source.token.raise_if_cancelled()

    def test_cancelled_is_a_compilation_failure(self):
        assert issubclass(Cancelled, CompilationFailed)

    def test_callbacks_fire_once(self):
        source = CancellationTokenSource()
        callback = MagicMock()
        source.token.register(callback)
        source.cancel()
        source.cancel()
        callback.assert_called_once()

    def test_register_after_cancel_fires_immediately(self):
        source = CancellationTokenSource()
        source.cancel()
        callback = MagicMock()
        source.token.register(callback)
        callback.assert_called_once()

    def test_unregister(self):
        source = CancellationTokenSource()
        callback = MagicMock()
        unregister = source.token.register(callback)
        unregister()
        source.cancel()
        callback.assert_not_called()

    def test_dispose_drops_callbacks(self):
        source = CancellationTokenSource()
        callback = MagicMock()
        source.token.register(callback)
        source.dispose()
        source.cancel()
        callback.assert_not_called()
        assert source.token.is_cancellation_requested
