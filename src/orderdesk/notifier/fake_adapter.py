"""Fake notifier: records notifications in memory for testing."""

from uuid import uuid4

from orderdesk.notifier.port import NotifierPort


class FakeNotifier(NotifierPort):
    """Notifier that records messages in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Notification delivery failed"

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Notification delivery failed",
        raise_error: bool = False,
    ):
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_error = raise_error

    def _send(self, audience: str, order_id: str, to: str | None, subject: str, body: str) -> dict:
        if self.raise_error:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"{audience}-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "message_id": message_id,
                "audience": audience,
                "order_id": order_id,
                "to": to,
                "subject": subject,
                "body": body,
            }
        )
        return {"message_id": message_id, "status": "sent"}

    def notify_customer(self, order_id: str, email: str | None, subject: str, body: str) -> dict:
        return self._send("customer", order_id, email, subject, body)

    def notify_merchant(self, order_id: str, subject: str, body: str) -> dict:
        return self._send("merchant", order_id, None, subject, body)

    def messages_for(self, audience: str) -> list[dict]:
        return [m for m in self.sent if m["audience"] == audience]

    def reset(self):
        """Clear sent messages (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.raise_error = False
        self.failure_reason = "Notification delivery failed"
