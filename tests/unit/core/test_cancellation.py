"""Unit tests for cooperative cancellation."""

import pytest
from incremental_rag.core import CancellationToken, ensure_token
from incremental_rag.models import OperationCancelledError


class TestCancellationToken:
    """Test cases for CancellationToken."""

    def test_new_token_is_not_cancelled(self):
        token = CancellationToken()

        assert not token.is_cancelled
        token.raise_if_cancelled("anything")

    def test_cancel_raises_with_stage(self):
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError) as exc_info:
            token.raise_if_cancelled("chunk embedding")

        assert exc_info.value.context["stage"] == "chunk embedding"
        assert "chunk embedding" in str(exc_info.value)

    def test_child_follows_parent(self):
        parent = CancellationToken()
        child = parent.child()

        parent.cancel()

        assert child.is_cancelled

    def test_child_cancel_does_not_affect_parent(self):
        parent = CancellationToken()
        child = parent.child()

        child.cancel()

        assert child.is_cancelled
        assert not parent.is_cancelled

    def test_ensure_token(self):
        token = CancellationToken()

        assert ensure_token(token) is token
        assert not ensure_token(None).is_cancelled
