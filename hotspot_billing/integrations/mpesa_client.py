"""M-Pesa Daraja client for Lipa Na M-Pesa Online (STK push)."""

import base64
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

import httpx

from hotspot_billing.core.config import Settings, settings as default_settings
from hotspot_billing.utils.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)

PRODUCTION_BASE_URL = "https://api.safaricom.co.ke"
SANDBOX_BASE_URL = "https://sandbox.safaricom.co.ke"

# Daraja expects timestamps in Kenyan time (UTC+3, no DST)
EAT = timezone(timedelta(hours=3), name="EAT")


def _eat_now() -> datetime:
    return datetime.now(EAT)


class MpesaClient:
    """Thin async wrapper over the Daraja OAuth and STK push endpoints."""

    def __init__(
        self,
        config: Settings = default_settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], datetime] = _eat_now,
    ) -> None:
        self._config = config
        self._transport = transport
        self._clock = clock

    @property
    def base_url(self) -> str:
        if self._config.MPESA_ENV.lower() == "production":
            return PRODUCTION_BASE_URL
        return SANDBOX_BASE_URL

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self._config.MPESA_TIMEOUT,
            transport=self._transport,
        )

    def timestamp(self) -> str:
        return self._clock().strftime("%Y%m%d%H%M%S")

    def build_password(self, timestamp: str) -> str:
        """Base64 of shortcode + passkey + timestamp, as Daraja requires."""
        raw = f"{self._config.MPESA_SHORTCODE}{self._config.MPESA_PASSKEY}{timestamp}"
        return base64.b64encode(raw.encode("utf-8")).decode("ascii")

    @staticmethod
    def _json(response: httpx.Response, what: str) -> dict[str, Any]:
        if response.status_code >= 400:
            logger.error(
                "M-Pesa %s returned %s: %s",
                what,
                response.status_code,
                response.text[:200],
            )
            raise PaymentGatewayError(details=f"{what} returned {response.status_code}")
        try:
            data = response.json()
        except ValueError as exc:
            raise PaymentGatewayError(details=f"{what} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise PaymentGatewayError(details=f"{what} returned an unexpected body")
        return data

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.get(
            "/oauth/v1/generate",
            params={"grant_type": "client_credentials"},
            auth=(self._config.MPESA_CONSUMER_KEY, self._config.MPESA_CONSUMER_SECRET),
        )
        token = self._json(response, "token request").get("access_token")
        if not token:
            raise PaymentGatewayError(details="token response has no access_token")
        return token

    async def get_access_token(self) -> str:
        """Exchange the consumer key/secret for a bearer token."""
        try:
            async with self._client() as client:
                return await self._get_access_token(client)
        except httpx.HTTPError as exc:
            logger.exception("Error calling M-Pesa OAuth endpoint")
            raise PaymentGatewayError(details=str(exc)) from exc

    def build_stk_payload(self, phone: str, amount: int, timestamp: str) -> dict[str, Any]:
        shortcode = self._config.MPESA_SHORTCODE
        return {
            "BusinessShortCode": shortcode,
            "Password": self.build_password(timestamp),
            "Timestamp": timestamp,
            "TransactionType": "CustomerPayBillOnline",
            "Amount": amount,
            "PartyA": phone,
            "PartyB": shortcode,
            "PhoneNumber": phone,
            "CallBackURL": self._config.MPESA_CALLBACK_URL,
            "AccountReference": self._config.MPESA_ACCOUNT_REFERENCE,
            "TransactionDesc": self._config.MPESA_TRANSACTION_DESC,
        }

    async def stk_push(self, phone: str, amount: int) -> str:
        """
        Send an STK push prompt to the customer's phone.

        Args:
            phone: Customer phone number (2547XXXXXXXX)
            amount: Amount to charge

        Returns:
            The CheckoutRequestID that the callback will echo back

        Raises:
            PaymentGatewayError: On transport errors, error statuses or a malformed reply
        """
        try:
            async with self._client() as client:
                token = await self._get_access_token(client)
                payload = self.build_stk_payload(phone, amount, self.timestamp())
                response = await client.post(
                    "/mpesa/stkpush/v1/processrequest",
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as exc:
            logger.exception("Error calling M-Pesa STK push")
            raise PaymentGatewayError(details=str(exc)) from exc

        checkout_id = self._json(response, "STK push").get("CheckoutRequestID")
        if not checkout_id:
            raise PaymentGatewayError(details="STK push response has no CheckoutRequestID")
        logger.info("STK push sent to %s for %s (checkout %s)", phone, amount, checkout_id)
        return checkout_id


def get_mpesa_client() -> MpesaClient:
    return MpesaClient()
