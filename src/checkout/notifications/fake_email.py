"""Email channel that keeps queued messages in memory."""

from dataclasses import dataclass
from itertools import count

from checkout.notifications.email_port import EmailPort, EmailReceipt


@dataclass(frozen=True)
class QueuedEmail:
    message_id: str
    to: str
    subject: str
    body: str


class FakeEmailAdapter(EmailPort):
    """Queues every message unless told to refuse them."""

    def __init__(self) -> None:
        self.queued: list[QueuedEmail] = []
        self.refusal: str | None = None
        self._ids = count(1)

    def refuse(self, reason: str = "Mailbox unavailable") -> None:
        self.refusal = reason

    def send(self, to: str, subject: str, body: str) -> EmailReceipt:
        if self.refusal is not None:
            return EmailReceipt(error=self.refusal)

        message = QueuedEmail(message_id=f"msg-{next(self._ids)}", to=to, subject=subject, body=body)
        self.queued.append(message)
        return EmailReceipt(message_id=message.message_id)

    def subjects_to(self, to: str) -> list[str]:
        return [m.subject for m in self.queued if m.to == to]
