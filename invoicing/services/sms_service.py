"""SMS notifications through the Termii API."""
import logging

import requests
from flask import current_app

logger = logging.getLogger(__name__)


def build_invoice_sms(customer_name: str, invoice_number: str, amount: str, company_name: str, view_link: str) -> str:
    """Single-line invoice notification."""
    message = (
        f"Hi {customer_name}, you have a new invoice #{invoice_number} "
        f"for {amount} from {company_name}. View: {view_link}"
    )
    return " ".join(message.split())


def send_sms(to: str, message: str) -> bool:
    """
    Hand ``message`` to the SMS provider.

    Returns:
        True when the provider accepted the message. Every failure
        (missing config, HTTP error, timeout, unexpected body) is logged
        and reported as False.
    """
    cfg = current_app.config
    api_key = cfg.get('TERMII_API_KEY')
    if not api_key:
        logger.warning(f"[SMS DISABLED] TERMII_API_KEY not set, message to {to} skipped")
        return False

    payload = {
        'to': to,
        'from': cfg.get('TERMII_SENDER_ID'),
        'sms': message,
        'type': 'plain',
        'channel': 'generic',
        'api_key': api_key,
    }
    url = f"{cfg.get('TERMII_BASE_URL')}/sms/send"

    try:
        response = requests.post(url, json=payload, timeout=cfg.get('HTTP_TIMEOUT', 10))
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        logger.error(f"[SMS] Termii request failed for {to}: {e}")
        return False
    except ValueError as e:
        logger.error(f"[SMS] Termii returned a non-JSON body for {to}: {e}")
        return False

    if not isinstance(data, dict):
        logger.error(f"[SMS] Termii returned an unexpected body for {to}: {data!r}")
        return False
    if not data.get('message_id'):
        logger.warning(f"[SMS] Termii did not accept message to {to}: {data.get('message')}")
        return False

    logger.info(f"[SMS] Sent to {to}, message_id={data['message_id']}")
    return True
