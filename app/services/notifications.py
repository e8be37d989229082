"""Top-up status emails, sent as a StatusChanged subscriber."""
import html
import logging
from decimal import Decimal

import httpx
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config import Settings
from app.repositories import user_repo
from app.services.events import DeliveryOutcome, StatusChanged

logger = logging.getLogger(__name__)


def format_amount(amount: Decimal, currency: str) -> str:
    code = (currency or "USD").upper()
    symbol = {"USD": "$", "EUR": "€", "GBP": "£"}.get(code)
    value = f"{Decimal(amount):,.2f}"
    return f"{symbol}{value}" if symbol else f"{value} {code}"


def render_status_email(
    name: str | None,
    status: str,
    amount: Decimal,
    payment_method: str | None,
    currency: str,
    notes: str | None,
    brand: str,
) -> tuple[str, str, str]:
    """Returns (subject, text, html)."""
    subject = "Wallet Top-up Approved" if status == "approved" else "Wallet Top-up Rejected"
    safe_name = name or "User"
    amount_str = format_amount(amount, currency)

    lines = []
    if payment_method:
        lines.append(f"Payment Method: {payment_method}")
    lines.append(f"Amount: {amount_str}")
    lines.append(f"Status: {status}")
    if notes:
        lines.append(f"Admin Notes: {notes}")

    text = (
        f"Hi {safe_name},\n\n"
        f"Your wallet top-up request has been {status.upper()}.\n\n"
        + "\n".join(lines)
        + f"\n\nThank you for using {brand}."
    )
    items = "".join(f"<li>{html.escape(line)}</li>" for line in lines)
    body = f"""
    <div style="font-family: Arial, sans-serif; line-height:1.6;">
      <p>Hi {html.escape(safe_name)},</p>
      <p>Your wallet top-up request has been <strong>{html.escape(status.upper())}</strong>.</p>
      <ul>{items}</ul>
      <p>Thank you for using {html.escape(brand)}.</p>
    </div>
    """
    return subject, text, body


class EmailNotifier:
    def __init__(
        self,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.settings = settings
        self.session_factory = session_factory
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.settings.resend_api_key and self.settings.email_from)

    async def send(self, to: str, subject: str, text: str, html_body: str) -> None:
        payload = {
            "from": self.settings.email_from,
            "to": [to],
            "subject": subject,
            "text": text,
            "html": html_body,
        }
        headers = {"Authorization": f"Bearer {self.settings.resend_api_key}", "Content-Type": "application/json"}
        if self._client is not None:
            response = await self._client.post(self.settings.email_api_url, json=payload, headers=headers)
        else:
            async with httpx.AsyncClient(timeout=self.settings.email_timeout_seconds) as client:
                response = await client.post(self.settings.email_api_url, json=payload, headers=headers)
        response.raise_for_status()

    async def on_status_changed(self, event: StatusChanged) -> DeliveryOutcome:
        if not self.configured:
            return DeliveryOutcome(handler="email", success=False, skipped=True, error="Email not configured")

        async with self.session_factory() as db:
            profile = await user_repo.get_profile(db, event.user_id)
        if profile is None or not profile.email:
            return DeliveryOutcome(handler="email", success=False, skipped=True, error="User email not found")

        subject, text, html_body = render_status_email(
            name=profile.full_name,
            status=event.status,
            amount=event.amount,
            payment_method=event.payment_method,
            currency=event.currency,
            notes=event.admin_notes,
            brand=self.settings.brand_name,
        )
        try:
            await self.send(profile.email, subject, text, html_body)
        except httpx.HTTPError as e:
            logger.warning("Status email to user %s failed: %s", event.user_id, e)
            return DeliveryOutcome(handler="email", success=False, error=str(e) or type(e).__name__)
        logger.info("Status email sent for top-up %s (%s)", event.request_id, event.status)
        return DeliveryOutcome(handler="email", success=True)
