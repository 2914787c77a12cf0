"""Wallet notification emails: rendering and sender addressing."""

from __future__ import annotations

import html
import logging
from pathlib import Path

from hr_airdrop_orchestrator.orchestrator.errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_SUBJECT = "Your token airdrop is ready!"
SENDER_DISPLAY_NAME = "HR Team"

_DEFAULT_TEMPLATE = """\
<h1>Your Token Airdrop is Ready!</h1>
<p>Dear {{name}},</p>
<p>We are pleased to inform you that you have received an airdrop of {{tokenAmount}} {{tokenSymbol}}.</p>
<p>To access your tokens, follow these steps:</p>
<ol>
  <li>Log in to your Crossmint account using this email address ({{email}})</li>
  <li>Go to "My Wallets" section to see your custodial wallet</li>
  <li>Your tokens will be visible in your wallet balance</li>
</ol>
<p>Your wallet address: {{walletAddress}}</p>
<p>Thank you for being a valued member of our team!</p>
"""


def load_template(path: Path | None) -> str:
    """Read the HTML template at `path`, or return the built-in one.

    An unreadable template is logged and replaced by the built-in message so a
    broken file never blocks notifications.
    """
    if path is None:
        return _DEFAULT_TEMPLATE
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(
            "Email template unreadable, using built-in message",
            extra={"path": str(path), "error": str(e)},
        )
        return _DEFAULT_TEMPLATE


def render_wallet_email(
    template: str,
    *,
    email: str,
    wallet_address: str,
    name: str | None = None,
    token_amount: float | None = None,
    token_symbol: str | None = None,
) -> str:
    values = {
        "name": name or "Employee",
        "email": email,
        "walletAddress": wallet_address,
        "tokenAmount": _format_amount(token_amount),
        "tokenSymbol": token_symbol or "tokens",
    }
    rendered = template
    for key, value in values.items():
        rendered = rendered.replace("{{" + key + "}}", html.escape(value))
    return rendered


def sender_address(from_email: str, domain: str) -> str:
    """Return the `From` header, completing a bare sender name with `domain`."""

    sender = from_email.strip()
    if not sender:
        raise ValidationError("fromEmail is required.")
    if "@" not in sender:
        if not domain.strip():
            raise ValidationError(
                "fromEmail has no domain and RESEND_DOMAIN is not configured.",
                details={"fromEmail": from_email},
            )
        sender = f"{sender}@{domain.strip()}"
    return f"{SENDER_DISPLAY_NAME} <{sender}>"


def _format_amount(amount: float | None) -> str:
    if amount is None:
        return "some"
    if float(amount).is_integer():
        return str(int(amount))
    return str(amount)
