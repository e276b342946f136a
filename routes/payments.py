from flask import Blueprint, current_app, request, jsonify, g

from security.rbac import login_required
from services.payments import PaymentService

payments_bp = Blueprint("payments", __name__, url_prefix="/payments")


def _payment_service() -> PaymentService:
    ext = current_app.extensions["adslot"]
    return PaymentService(ext["gateway"], ext["mailer"])


def _first(data: dict, *names):
    # the checkout widget posts snake_case, our client camelCase
    for name in names:
        value = data.get(name)
        if value:
            return value
    return None


@payments_bp.post("")
@login_required
def create_payment():
    data = request.get_json(silent=True) or {}
    booking_id = _first(data, "booking_id", "bookingId")
    amount = data.get("amount")
    transaction_id = _first(data, "transaction_id", "transactionId")

    if not isinstance(amount, (int, float, str)) or isinstance(amount, bool):
        return jsonify(error="Invalid amount: must be a positive number."), 400
    try:
        booking_id = int(booking_id)
    except (TypeError, ValueError):
        return jsonify(error="Invalid booking_id."), 400
    if not transaction_id or not isinstance(transaction_id, str):
        return jsonify(error="Invalid transaction_id."), 400

    result = _payment_service().create_payment(booking_id, g.user.id, amount, transaction_id)
    return jsonify(result), 201


# Called by the client right after checkout succeeds; no session needed,
# the gateway signature is the proof.
@payments_bp.post("/complete/<int:payment_id>")
def complete_payment(payment_id: int):
    data = request.get_json(silent=True) or {}
    order_id = _first(data, "razorpay_order_id", "razorpayOrderId", "order_id")
    gateway_payment_id = _first(data, "razorpay_payment_id", "razorpayPaymentId", "gateway_payment_id")
    signature = _first(data, "razorpay_signature", "razorpaySignature", "signature")

    if not order_id or not gateway_payment_id or not signature:
        return jsonify(error="Missing payment details in request body."), 400

    result = _payment_service().complete_payment(payment_id, order_id, gateway_payment_id, signature)
    return jsonify(result), 200


@payments_bp.get("/user")
@login_required
def list_my_payments():
    rows = _payment_service().list_payments_by_user(g.user.id)
    for row in rows:
        row["amount"] = str(row["amount"])
    return jsonify(rows), 200
