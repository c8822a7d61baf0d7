"""
PhonePe payment gateway client (Standard Checkout, V2 API).

The client authenticates with OAuth2 client credentials and keeps the
access token in an injected TokenCache until shortly before it expires.
Public calls never raise for gateway, network or parsing problems: they
return a result object with `success=False` and an error code, so callers
can show a payment-failed page instead of a server error.

Security Considerations:
- Client secret is only sent to the identity endpoint, form encoded
- Callback authenticity is checked with a constant-time comparison
- Request timeouts are always set
"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import requests

logger = logging.getLogger(__name__)

ENVIRONMENTS = {
    "SANDBOX": {
        "auth": "https://api-preprod.phonepe.com/apis/pg-sandbox",
        "pg": "https://api-preprod.phonepe.com/apis/pg-sandbox",
    },
    "PRODUCTION": {
        "auth": "https://api.phonepe.com/apis/identity-manager",
        "pg": "https://api.phonepe.com/apis/pg",
    },
}

TOKEN_PATH = "/v1/oauth/token"
PAY_PATH = "/checkout/v2/pay"
STATUS_PATH = "/checkout/v2/order/{merchant_order_id}/status"

STATE_PENDING = "PENDING"
STATE_COMPLETED = "COMPLETED"
STATE_FAILED = "FAILED"

NETWORK_ERROR = "NETWORK_ERROR"
AUTH_ERROR = "AUTH_ERROR"
INVALID_RESPONSE = "INVALID_RESPONSE"

PAYMENT_STATUS_TEXT = {
    STATE_PENDING: "Payment is being processed",
    STATE_COMPLETED: "Payment completed successfully",
    STATE_FAILED: "Payment failed",
}


class PhonePeError(Exception):
    def __init__(self, code, message):
        self.code = code
        self.message = message
        super().__init__(f"{code}: {message}")


class TokenCache:
    """
    Holds one access token and its absolute expiry (epoch seconds).

    Writes are last-write-wins without locking: two concurrent refreshes
    only cost a duplicate token request.
    """

    def __init__(self, clock=time.time):
        self.clock = clock
        self.token = None
        self.expires_at = 0.0

    def get(self, buffer_seconds=0):
        if self.token and self.clock() < self.expires_at - buffer_seconds:
            return self.token
        return None

    def store(self, token, expires_at):
        self.token = token
        self.expires_at = float(expires_at)

    def clear(self):
        self.token = None
        self.expires_at = 0.0


@dataclass(frozen=True)
class PaymentRequest:
    merchant_order_id: str
    amount: Decimal
    redirect_url: str
    message: str = ""
    expire_after: int = 1200


@dataclass(frozen=True)
class PaymentInitiation:
    success: bool
    redirect_url: Optional[str] = None
    order_id: Optional[str] = None
    state: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class PaymentStatusResult:
    success: bool
    state: Optional[str] = None
    transaction_id: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None


def to_paise(amount) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_payment_status_text(state) -> str:
    return PAYMENT_STATUS_TEXT.get(state, "Unknown payment status")


def parse_callback_payload(body):
    """
    Extract (merchant_order_id, state, transaction_id, failure_reason) from a
    callback body. PhonePe wraps the order in `payload` for V2 events; a
    flat body is accepted as well.
    """
    payload = body.get("payload") if isinstance(body.get("payload"), dict) else body
    details = payload.get("paymentDetails")
    first = details[0] if isinstance(details, list) and details and isinstance(details[0], dict) else {}
    transaction_id = payload.get("transactionId") or first.get("transactionId")
    failure_reason = payload.get("errorCode") or first.get("errorCode") or body.get("responseCode")
    return payload.get("merchantOrderId"), payload.get("state"), transaction_id, failure_reason


class PhonePeClient:
    """
    Thin client for the PhonePe checkout API.

    `session` and `token_cache` are injectable for tests; by default a
    `requests.Session` and a fresh TokenCache are used.
    """

    def __init__(
        self,
        client_id,
        client_secret,
        client_version="1",
        environment="SANDBOX",
        session=None,
        token_cache=None,
        timeout=10,
        expiry_buffer=60,
        callback_username="",
        callback_password="",
    ):
        if environment not in ENVIRONMENTS:
            raise ValueError(f"Unknown PhonePe environment: {environment}")
        self.client_id = client_id
        self.client_secret = client_secret
        self.client_version = str(client_version)
        self.environment = environment
        self.urls = ENVIRONMENTS[environment]
        self.session = session or requests.Session()
        self.token_cache = token_cache or TokenCache()
        self.timeout = timeout
        self.expiry_buffer = expiry_buffer
        self.callback_username = callback_username
        self.callback_password = callback_password

    def get_access_token(self) -> str:
        """
        Return a cached token, fetching a new one when the cached token is
        missing or within `expiry_buffer` seconds of expiring.

        Raises PhonePeError with AUTH_ERROR or NETWORK_ERROR.
        """
        token = self.token_cache.get(self.expiry_buffer)
        if token:
            return token

        try:
            response = self.session.post(
                f"{self.urls['auth']}{TOKEN_PATH}",
                data={
                    "client_id": self.client_id,
                    "client_version": self.client_version,
                    "client_secret": self.client_secret,
                    "grant_type": "client_credentials",
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise PhonePeError(NETWORK_ERROR, str(e)) from e

        try:
            data = response.json()
        except ValueError as e:
            raise PhonePeError(AUTH_ERROR, f"Invalid token response (HTTP {response.status_code})") from e

        token = data.get("access_token") if isinstance(data, dict) else None
        if response.status_code != 200 or not token:
            message = data.get("message") if isinstance(data, dict) else None
            raise PhonePeError(AUTH_ERROR, message or f"Token request failed (HTTP {response.status_code})")

        expires_at = data.get("expires_at")
        if expires_at is None:
            expires_at = self.token_cache.clock() + float(data.get("expires_in", 0))
        self.token_cache.store(token, expires_at)
        logger.info(f"PhonePe access token refreshed, expires at {expires_at}")
        return token

    def _auth_headers(self):
        return {
            "Content-Type": "application/json",
            "Authorization": f"O-Bearer {self.get_access_token()}",
        }

    def _read_json(self, response):
        if response.status_code == 401:
            self.token_cache.clear()
        try:
            data = response.json()
        except ValueError as e:
            raise PhonePeError(INVALID_RESPONSE, f"Invalid JSON response (HTTP {response.status_code})") from e
        if not isinstance(data, dict):
            raise PhonePeError(INVALID_RESPONSE, "Unexpected response shape")
        return data

    def initiate_payment(self, request: PaymentRequest) -> PaymentInitiation:
        body = {
            "merchantOrderId": request.merchant_order_id,
            "amount": to_paise(request.amount),
            "expireAfter": request.expire_after,
            "paymentFlow": {
                "type": "PG_CHECKOUT",
                "message": request.message or f"Payment for order {request.merchant_order_id}",
                "merchantUrls": {"redirectUrl": request.redirect_url},
            },
        }
        try:
            response = self.session.post(
                f"{self.urls['pg']}{PAY_PATH}",
                json=body,
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
            data = self._read_json(response)
        except PhonePeError as e:
            logger.error(f"PhonePe payment initiation failed for {request.merchant_order_id}: {e}")
            return PaymentInitiation(success=False, code=e.code, message=e.message)
        except requests.RequestException as e:
            logger.error(f"PhonePe payment initiation error for {request.merchant_order_id}: {e}")
            return PaymentInitiation(success=False, code=NETWORK_ERROR, message=str(e))

        if data.get("orderId") and data.get("redirectUrl"):
            logger.info(f"PhonePe payment initiated for {request.merchant_order_id}: {data['orderId']}")
            return PaymentInitiation(
                success=True,
                redirect_url=data["redirectUrl"],
                order_id=data["orderId"],
                state=data.get("state"),
            )

        logger.warning(f"PhonePe rejected payment for {request.merchant_order_id}: {data}")
        return PaymentInitiation(
            success=False,
            code=data.get("code") or "UNKNOWN_ERROR",
            message=data.get("message") or "Payment initiation failed",
        )

    def check_payment_status(self, merchant_order_id) -> PaymentStatusResult:
        try:
            response = self.session.get(
                f"{self.urls['pg']}{STATUS_PATH.format(merchant_order_id=merchant_order_id)}",
                headers=self._auth_headers(),
                timeout=self.timeout,
            )
            data = self._read_json(response)
        except PhonePeError as e:
            logger.error(f"PhonePe status check failed for {merchant_order_id}: {e}")
            return PaymentStatusResult(success=False, code=e.code, message=e.message)
        except requests.RequestException as e:
            logger.error(f"PhonePe status check error for {merchant_order_id}: {e}")
            return PaymentStatusResult(success=False, code=NETWORK_ERROR, message=str(e))

        state = data.get("state")
        if state not in PAYMENT_STATUS_TEXT:
            return PaymentStatusResult(
                success=False,
                code=data.get("code") or INVALID_RESPONSE,
                message=data.get("message") or "Missing payment state",
            )

        details = data.get("paymentDetails")
        first = details[0] if isinstance(details, list) and details and isinstance(details[0], dict) else {}
        transaction_id = first.get("transactionId")
        return PaymentStatusResult(
            success=state == STATE_COMPLETED,
            state=state,
            transaction_id=transaction_id,
            code=data.get("errorCode"),
            message=get_payment_status_text(state),
        )

    @property
    def callback_verification_enabled(self) -> bool:
        return bool(self.callback_username and self.callback_password)

    def verify_callback(self, authorization) -> bool:
        """
        PhonePe sends SHA256("username:password") in the Authorization header
        of server-to-server callbacks.
        """
        if not self.callback_verification_enabled or not authorization:
            return False
        expected = hashlib.sha256(
            f"{self.callback_username}:{self.callback_password}".encode()
        ).hexdigest()
        received = authorization.strip()
        if received.upper().startswith("SHA256 "):
            received = received[7:].strip()
        return hmac.compare_digest(expected, received.lower())
