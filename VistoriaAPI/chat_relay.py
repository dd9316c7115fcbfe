"""
Outbound chat messages through a Chatwoot inbox (bridged to WhatsApp).

Messages are best effort: every function returns a falsy value on failure and
logs the reason instead of raising.
"""

import logging
import re
from typing import Optional

import requests

from VistoriaAPI import config

logger = logging.getLogger(__name__)


def _configured() -> bool:
    return bool(config.CHATWOOT_API_TOKEN and config.CHATWOOT_ACCOUNT_ID and config.CHATWOOT_INBOX_ID)


def _account_url(path: str) -> str:
    return f"{config.CHATWOOT_API_URL}/api/v1/accounts/{config.CHATWOOT_ACCOUNT_ID}/{path}"


def _headers():
    return {"api_access_token": config.CHATWOOT_API_TOKEN, "Content-Type": "application/json"}


def normalize_phone(phone: Optional[str]) -> str:
    """Keep digits only, e.g. "(11) 98765-4321" -> "11987654321"."""
    return re.sub(r"\D", "", phone or "")


def find_or_create_contact(phone: str, name: Optional[str] = None) -> Optional[int]:
    digits = normalize_phone(phone)
    try:
        resp = requests.get(
            _account_url("contacts/search"),
            params={"q": digits},
            headers=_headers(),
            timeout=config.CHATWOOT_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        found = resp.json().get("payload") or []
        if found:
            return found[0].get("id")

        resp = requests.post(
            _account_url("contacts"),
            json={"inbox_id": config.CHATWOOT_INBOX_ID, "name": name or f"+{digits}", "phone_number": f"+{digits}"},
            headers=_headers(),
            timeout=config.CHATWOOT_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        return ((resp.json().get("payload") or {}).get("contact") or {}).get("id")
    except (requests.RequestException, ValueError):
        logger.exception("Failed to find or create chat contact")
        return None


def find_or_create_conversation(contact_id: int) -> Optional[int]:
    try:
        resp = requests.get(
            _account_url(f"contacts/{contact_id}/conversations"),
            headers=_headers(),
            timeout=config.CHATWOOT_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        for conversation in resp.json().get("payload") or []:
            if conversation.get("status") == "open":
                return conversation.get("id")

        resp = requests.post(
            _account_url("conversations"),
            json={"inbox_id": config.CHATWOOT_INBOX_ID, "contact_id": contact_id},
            headers=_headers(),
            timeout=config.CHATWOOT_TIMEOUT_SECONDS,
        )
        resp.raise_for_status()
        return resp.json().get("id")
    except (requests.RequestException, ValueError):
        logger.exception("Failed to find or create chat conversation")
        return None


def send_message(phone: Optional[str], text: str) -> bool:
    """
    Send `text` to `phone`, reusing the contact's open conversation when there is one.

    Returns:
        bool: True if the relay accepted the message.
    """
    if not _configured():
        logger.warning("Chat relay configuration incomplete; message not sent")
        return False
    if not normalize_phone(phone):
        logger.info("No phone number; skipping chat message")
        return False

    contact_id = find_or_create_contact(phone)
    if not contact_id:
        return False
    conversation_id = find_or_create_conversation(contact_id)
    if not conversation_id:
        return False

    try:
        resp = requests.post(
            _account_url(f"conversations/{conversation_id}/messages"),
            json={"content": text, "message_type": "outgoing", "private": False},
            headers=_headers(),
            timeout=config.CHATWOOT_TIMEOUT_SECONDS,
        )
    except requests.RequestException:
        logger.exception("Failed to send chat message")
        return False
    return resp.ok
