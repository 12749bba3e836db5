"""Outgoing email channel used by ``MessageFactory``."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailReceipt:
    """What the channel did with one message. ``message_id`` is set once it is queued."""

    message_id: str | None = None
    error: str | None = None

    @property
    def queued(self) -> bool:
        return self.message_id is not None


class EmailPort(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> EmailReceipt:
        """Queue a rendered message for delivery.

        A refused message comes back as a receipt without ``message_id``.
        Transport failures may raise; callers treat them like a refusal.
        """
        ...
