from __future__ import annotations

import hashlib
import hmac
from collections import deque
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4

import razorpay
import requests
from razorpay.errors import BadRequestError, GatewayError as RazorpayGatewayError, ServerError

from errors import GatewayError, GatewayValidationError


@dataclass
class GatewayOrder:
    order_id: str
    amount_minor: int
    currency: str


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    payload = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_signature(order_id: str, payment_id: str, signature: str, secret: str) -> bool:
    """
    Check the checkout signature the gateway hands back to the client.

    The gateway signs ``"<order_id>|<payment_id>"`` with HMAC-SHA256 using the
    merchant key secret. No network call is made.
    """
    if not (order_id and payment_id and signature and secret):
        return False
    expected = compute_signature(order_id, payment_id, secret)
    return hmac.compare_digest(expected, str(signature))


def _order_from_response(order) -> GatewayOrder:
    if not isinstance(order, dict):
        raise GatewayError("Malformed response from payment gateway", description="order is not an object")
    try:
        return GatewayOrder(
            order_id=str(order["id"]),
            amount_minor=int(order["amount"]),
            currency=str(order["currency"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise GatewayError("Malformed response from payment gateway", description=str(exc))


def _sdk_message(exc) -> str:
    # razorpay errors are built with message=None when the API sends no description
    message = exc.args[0] if exc.args else None
    return str(message) if message else ""


class PaymentGateway:
    """
    Razorpay order creation plus local signature checks.

    Built once at app start (see app.create_app) and handed to the payment
    service; every call is a single attempt.
    """

    def __init__(self, key_id: str, key_secret: str, client=None):
        if not key_id or not key_secret:
            raise RuntimeError("Razorpay key id/secret are not configured.")
        self.key_secret = key_secret
        self.client = client or razorpay.Client(auth=(key_id, key_secret))

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: Optional[dict] = None) -> GatewayOrder:
        data = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            order = self.client.order.create(data=data)
        except BadRequestError as exc:
            raise GatewayValidationError(
                f"Payment gateway validation error: {_sdk_message(exc) or 'Invalid input.'}",
                gateway_code="BAD_REQUEST_ERROR",
                description=_sdk_message(exc),
            )
        except (RazorpayGatewayError, ServerError) as exc:
            raise GatewayError(
                f"Payment gateway error: {_sdk_message(exc) or 'Unknown gateway error'}",
                gateway_code=type(exc).__name__,
                description=_sdk_message(exc),
            )
        except requests.RequestException as exc:
            # timeouts included; the caller decides whether to try again
            raise GatewayError(
                "Payment gateway unreachable",
                gateway_code="TRANSPORT_ERROR",
                description=str(exc),
            )
        return _order_from_response(order)

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(order_id, payment_id, signature, self.key_secret)


class StubPaymentGateway:
    """
    Local stand-in, used only when PAYMENT_GATEWAY_USE_STUB is set.

    Orders get predictable ``order_test_`` ids and signatures are checked with
    the same HMAC as the real gateway, so the completion flow runs unchanged.
    """

    def __init__(self, key_secret: str, keep_orders: int = 50):
        if not key_secret:
            raise RuntimeError("Stub gateway needs RAZORPAY_KEY_SECRET to sign with.")
        self.key_secret = key_secret
        # most recent orders only, for inspection in tests and local runs
        self.orders = deque(maxlen=keep_orders)

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: Optional[dict] = None) -> GatewayOrder:
        order = GatewayOrder(order_id=f"order_test_{uuid4().hex[:14]}", amount_minor=amount_minor, currency=currency)
        self.orders.append({"order": order, "receipt": receipt, "notes": notes or {}})
        return order

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(order_id, payment_id, self.key_secret)

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        return verify_signature(order_id, payment_id, signature, self.key_secret)


def build_gateway(config):
    if config.get("PAYMENT_GATEWAY_USE_STUB"):
        return StubPaymentGateway(config.get("RAZORPAY_KEY_SECRET"))
    if not config.get("RAZORPAY_KEY_ID") or not config.get("RAZORPAY_KEY_SECRET"):
        raise RuntimeError("Razorpay configuration missing: set RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET.")
    return PaymentGateway(config["RAZORPAY_KEY_ID"], config["RAZORPAY_KEY_SECRET"])
