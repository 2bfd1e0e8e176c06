"""Tests for log redaction."""

from dndtracker.logging import redact_secrets


class TestRedactSecrets:
    """Secrets never reach the rendered event."""

    def test_secret_keys_redacted(self):
        event = redact_secrets(None, "info", {"event": "x", "password": "hunter2", "session_id": "a" * 64})

        assert event == {"event": "x", "password": "[redacted]", "session_id": "[redacted]"}

    def test_other_keys_untouched(self):
        event = redact_secrets(None, "info", {"event": "session_created", "user_id": "u1", "remember_me": True})

        assert event == {"event": "session_created", "user_id": "u1", "remember_me": True}
