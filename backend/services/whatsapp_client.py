"""
WhatsApp client — sends messages through the Twilio Messages API.

Twilio accepts form-encoded POSTs authenticated with HTTP basic auth
(account SID : auth token). A message is either:
  - a session message: free text in `Body` (only inside the 24h window), or
  - a template message: an approved `ContentSid` plus positional
    `ContentVariables` ({"1": ..., "2": ...}).

Provider rejections come back as a ProviderResponse with ok=False;
timeouts and transport errors raise DispatchError.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from config import Settings
from domain.constants import WHATSAPP_ADDRESS_PREFIX
from domain.errors import DispatchError

logger = logging.getLogger(__name__)


@dataclass
class ProviderResponse:
    ok: bool
    message_sid: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None


def whatsapp_address(canonical_phone: str) -> str:
    """213551234567 → whatsapp:+213551234567"""
    number = canonical_phone if canonical_phone.startswith("+") else f"+{canonical_phone}"
    return f"{WHATSAPP_ADDRESS_PREFIX}{number}"


class WhatsAppClient:
    """Thin async wrapper over the Twilio Messages endpoint."""

    def __init__(self, settings: Settings, http_client: Optional[httpx.AsyncClient] = None):
        self._settings = settings
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return self._settings.messaging_configured

    def _messages_url(self) -> str:
        base = self._settings.twilio_api_base.rstrip("/")
        return f"{base}/2010-04-01/Accounts/{self._settings.twilio_account_sid}/Messages.json"

    def _build_form(
        self,
        to: str,
        body: Optional[str],
        content_sid: Optional[str],
        content_variables: Optional[dict],
    ) -> dict:
        sender = self._settings.twilio_whatsapp_number
        form = {
            "To": whatsapp_address(to),
            "From": sender if sender.startswith(WHATSAPP_ADDRESS_PREFIX) else f"{WHATSAPP_ADDRESS_PREFIX}{sender}",
        }
        if content_sid:
            form["ContentSid"] = content_sid
            form["ContentVariables"] = json.dumps(content_variables or {}, ensure_ascii=False)
        else:
            form["Body"] = body or ""
        return form

    async def send(
        self,
        to: str,
        *,
        body: Optional[str] = None,
        content_sid: Optional[str] = None,
        content_variables: Optional[dict] = None,
    ) -> ProviderResponse:
        """
        Send one WhatsApp message.

        Args:
            to: Canonical phone (e.g. 213551234567)
            body: Session message text
            content_sid: Template reference (takes precedence over body)
            content_variables: Positional template variables

        Returns:
            ProviderResponse with the Twilio message SID on success, or the
            Twilio error code/message on rejection

        Raises:
            DispatchError on timeout or transport failure
        """
        if not self.configured:
            raise DispatchError("Twilio WhatsApp is not configured", error_code="not_configured")

        form = self._build_form(to, body, content_sid, content_variables)
        auth = (self._settings.twilio_account_sid, self._settings.twilio_auth_token)

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    self._messages_url(),
                    data=form,
                    auth=auth,
                    timeout=self._settings.notification_timeout_seconds,
                )
            else:
                async with httpx.AsyncClient(timeout=self._settings.notification_timeout_seconds) as client:
                    response = await client.post(self._messages_url(), data=form, auth=auth)
        except httpx.TimeoutException as e:
            raise DispatchError(f"Twilio request timed out: {e}", error_code="timeout") from e
        except httpx.HTTPError as e:
            raise DispatchError(f"Twilio request failed: {e}", error_code="transport_error") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.is_success:
            sid = payload.get("sid")
            if not sid:
                logger.warning(f"Twilio answered {response.status_code} without a message sid")
                return ProviderResponse(
                    ok=False,
                    error_code="missing_sid",
                    error_message=f"Twilio answered {response.status_code} without a message sid",
                )
            logger.info(f"WhatsApp message accepted by Twilio: {sid}")
            return ProviderResponse(ok=True, message_sid=sid)

        code = payload.get("code")
        message = payload.get("message") or response.text or f"HTTP {response.status_code}"
        logger.warning(f"Twilio rejected WhatsApp message ({response.status_code}): {code} {message}")
        return ProviderResponse(
            ok=False,
            error_code=str(code) if code is not None else str(response.status_code),
            error_message=message,
        )
