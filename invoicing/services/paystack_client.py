"""Paystack API client for invoice payment links."""
import hashlib
import hmac
import random
import time
from decimal import Decimal
from typing import Dict, Any, Optional

import requests
from flask import current_app


def to_kobo(amount) -> int:
    """Paystack amounts are integers in the currency's minor unit."""
    return int((Decimal(str(amount)) * 100).to_integral_value())


def from_kobo(amount) -> Decimal:
    return (Decimal(int(amount)) / 100).quantize(Decimal('0.01'))


def generate_reference() -> str:
    """Payment reference like ``INV-1760000000000-4821``."""
    return f"INV-{int(time.time() * 1000)}-{random.randint(1000, 9999)}"


def verify_webhook_signature(payload: bytes, signature: Optional[str], secret_key: str) -> bool:
    """Check the ``x-paystack-signature`` header (HMAC-SHA512 of the raw body)."""
    if not signature or not secret_key:
        return False
    expected = hmac.new(secret_key.encode('utf-8'), payload, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)


class PaystackClient:
    """Thin wrapper over the two Paystack transaction calls the app needs."""

    def __init__(self, secret_key: Optional[str] = None, base_url: Optional[str] = None):
        """
        Args:
            secret_key: Paystack secret key. If None, reads PAYSTACK_SECRET_KEY from config
            base_url: API root. If None, reads PAYSTACK_BASE_URL from config
        """
        self.secret_key = secret_key or current_app.config.get('PAYSTACK_SECRET_KEY')
        if not self.secret_key:
            raise ValueError("PAYSTACK_SECRET_KEY is required")

        self.base_url = (base_url or current_app.config.get('PAYSTACK_BASE_URL', 'https://api.paystack.co')).rstrip('/')
        self.timeout = current_app.config.get('HTTP_TIMEOUT', 10)
        self.headers = {
            'Authorization': f'Bearer {self.secret_key}',
            'Content-Type': 'application/json'
        }

    def initialize_transaction(
        self,
        email: str,
        amount,
        reference: str,
        callback_url: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        currency: str = 'NGN'
    ) -> Dict[str, Any]:
        """
        Start a transaction and get the hosted checkout URL.

        Returns:
            Paystack ``data`` object (authorization_url, access_code, reference)

        Raises:
            requests.HTTPError: Paystack rejected the request
            ValueError: Paystack answered with status false
        """
        url = f"{self.base_url}/transaction/initialize"
        payload = {
            'email': email,
            'amount': to_kobo(amount),
            'reference': reference,
            'currency': currency,
        }
        if callback_url:
            payload['callback_url'] = callback_url
        if metadata:
            payload['metadata'] = metadata

        current_app.logger.info(f"[PAYSTACK] Initializing transaction {reference}")

        try:
            response = requests.post(url, json=payload, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.HTTPError as e:
            current_app.logger.error(f"[PAYSTACK] Error initializing {reference}: {e.response.text}")
            raise

        if not body.get('status'):
            raise ValueError(body.get('message') or 'Paystack initialization failed')

        current_app.logger.info(f"[PAYSTACK] Transaction {reference} initialized")
        return body['data']

    def verify_transaction(self, reference: str) -> Dict[str, Any]:
        """
        Fetch the final state of a transaction.

        Returns:
            Paystack ``data`` object (status, amount in kobo, paid_at, ...)

        Raises:
            requests.HTTPError: Paystack rejected the request
        """
        url = f"{self.base_url}/transaction/verify/{reference}"

        current_app.logger.info(f"[PAYSTACK] Verifying transaction {reference}")

        try:
            response = requests.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.HTTPError as e:
            current_app.logger.error(f"[PAYSTACK] Error verifying {reference}: {e.response.text}")
            raise

        data = body.get('data') or {}
        current_app.logger.info(f"[PAYSTACK] Transaction {reference} status: {data.get('status')}")
        return data
