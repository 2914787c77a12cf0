"""Email notification providers."""

from __future__ import annotations

import itertools
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass

import requests

from hr_airdrop_orchestrator.orchestrator.errors import ExecutionError

logger = logging.getLogger(__name__)

RESEND_EMAILS_URL = "https://api.resend.com/emails"


@dataclass(frozen=True, slots=True)
class EmailMessage:
    to: str
    sender: str
    subject: str
    html: str


@dataclass(frozen=True, slots=True)
class Delivery:
    message_id: str
    simulated: bool = False


class Notifier(ABC):
    """Abstract base class for notification providers."""

    @abstractmethod
    def send(self, message: EmailMessage) -> Delivery:
        """Deliver one message.

        Args:
            message: The rendered email.

        Returns:
            The provider's message identifier, flagged when simulated.

        Raises:
            ExecutionError: If delivery was refused or the provider is unreachable.
        """
        pass


class ResendNotifier(Notifier):
    """Resend HTTP API provider."""

    def __init__(
        self,
        api_key: str,
        *,
        timeout_seconds: float = 30.0,
        session: requests.Session | None = None,
    ) -> None:
        if not api_key.strip():
            raise ValueError("Resend API key is required")

        self._timeout = timeout_seconds
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key.strip()}",
                "Content-Type": "application/json",
                "User-Agent": "hr-airdrop-orchestrator",
            }
        )

    def send(self, message: EmailMessage) -> Delivery:
        payload = {
            "from": message.sender,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        try:
            resp = self._session.post(RESEND_EMAILS_URL, json=payload, timeout=self._timeout)
        except requests.RequestException as e:
            raise ExecutionError(f"Failed to send email to {message.to}: {e}") from e

        if not resp.ok:
            raise ExecutionError(
                f"Resend API error for {message.to}: HTTP {resp.status_code}",
                details={"status": resp.status_code, "body": resp.text[:500]},
            )
        try:
            data = resp.json()
        except ValueError:
            data = None
        message_id = str(data.get("id", "")) if isinstance(data, dict) else ""
        return Delivery(message_id=message_id)


class SimulatedNotifier(Notifier):
    """Records messages instead of delivering them."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self.sent: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> Delivery:
        with self._lock:
            self.sent.append(message)
            message_id = f"simemail_{next(self._counter):06d}"
        logger.info(
            "Simulated email", extra={"to": message.to, "subject": message.subject}
        )
        return Delivery(message_id=message_id, simulated=True)


class FallbackNotifier(Notifier):
    """Delegates to a simulated notifier when live delivery fails."""

    def __init__(self, primary: Notifier, fallback: Notifier) -> None:
        self._primary = primary
        self._fallback = fallback

    def send(self, message: EmailMessage) -> Delivery:
        try:
            return self._primary.send(message)
        except ExecutionError as e:
            logger.warning(
                "Notifier failed, falling back to simulation",
                extra={"to": message.to, "error": e.message},
            )
            return self._fallback.send(message)
