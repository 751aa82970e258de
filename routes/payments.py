import logging
from datetime import datetime
from urllib.parse import urlencode, urlparse, parse_qsl, urlunparse

import stripe
from flask import Blueprint, request, jsonify, current_app, g

from models import db
from models.booking import Booking, STATUS_PAID, STATUS_PENDING_PAYMENT
from models.payment import Payment, PAYMENT_INIT, PAYMENT_PAID
from models.payment_setting import PaymentGatewaySetting
from security.rbac import require_roles
from services.booking_commands import confirm_payment
from utils.auth_context import login_required
from utils.audit import log_event
from utils.roles import OPERATOR, SUPERVISOR

logger = logging.getLogger(__name__)

payments_bp = Blueprint("payments", __name__)


def _append_query(url: str, params: dict) -> str:
    if not url:
        return url
    parts = urlparse(url)
    query = dict(parse_qsl(parts.query))
    query.update({k: v for k, v in params.items() if v is not None})
    new_query = urlencode(query)
    return urlunparse(parts._replace(query=new_query))


def gateway_enabled(name: str) -> bool:
    setting = PaymentGatewaySetting.query.filter_by(gateway=name).first()
    return bool(setting and setting.is_enabled)


@payments_bp.post("/payments/start")
@login_required
def start_payment():
    if not gateway_enabled("stripe"):
        return jsonify(error="Online payments are disabled"), 403

    stripe.api_key = current_app.config.get("STRIPE_SECRET_KEY")
    success_url = current_app.config.get("STRIPE_SUCCESS_URL")
    cancel_url = current_app.config.get("STRIPE_CANCEL_URL")
    if not stripe.api_key:
        return jsonify(error="Stripe secret key missing (STRIPE_SECRET_KEY)"), 500
    if not success_url or not cancel_url:
        return jsonify(error="Stripe success/cancel URLs not configured"), 500

    data = request.get_json(silent=True) or {}
    booking_id = data.get("booking_id")
    if not isinstance(booking_id, int):
        return jsonify(error="booking_id required"), 400

    booking = Booking.query.get(booking_id)
    if not booking or booking.user_id != g.user.id:
        return jsonify(error="Booking not found"), 404
    if booking.status == STATUS_PAID:
        return jsonify(error="Booking already paid"), 400
    if booking.is_expired_hold(datetime.utcnow()):
        return jsonify(error="Booking hold expired"), 410

    payment = Payment(
        booking_id=booking.id,
        user_id=g.user.id,
        provider="stripe",
        amount=int(booking.amount or 0),
        currency=booking.currency or current_app.config.get("PAYMENT_CURRENCY", "MXN"),
        status=PAYMENT_INIT,
    )
    db.session.add(payment)
    db.session.commit()

    cancel_url = _append_query(cancel_url, {"payment_id": str(payment.id)})

    try:
        session = stripe.checkout.Session.create(
            mode="payment",
            line_items=[{
                "price_data": {
                    "currency": payment.currency.lower(),
                    "product_data": {"name": f"{booking.court.name} {booking.start_time.isoformat()}"},
                    "unit_amount": payment.amount,
                },
                "quantity": 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={
                "booking_id": str(booking.id),
                "payment_id": str(payment.id),
                "user_id": str(g.user.id),
            },
        )
    except stripe.StripeError:
        logger.exception("Stripe checkout session failed for booking %s", booking.id)
        payment.mark_failed()
        db.session.commit()
        return jsonify(error="Payment provider unavailable"), 502

    payment.stripe_session_id = session["id"]
    db.session.commit()

    log_event("PAYMENT_SESSION_CREATED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"stripe_session_id": session["id"], "booking_id": booking.id})
    return jsonify(checkout_url=session["url"], payment_id=payment.id), 200


@payments_bp.get("/payments/cancel")
@login_required
def cancel_payment():
    payment_id = request.args.get("payment_id", type=int)
    payment = Payment.query.get(payment_id) if payment_id else None
    if not payment or payment.user_id != g.user.id:
        return jsonify(error="Payment not found"), 404
    if payment.status == PAYMENT_PAID:
        return jsonify(error="Payment already confirmed"), 400

    # releasing the hold frees the slot right away
    booking = Booking.query.get(payment.booking_id) if payment.booking_id else None
    if payment.belongs_to(booking) and booking.status == STATUS_PENDING_PAYMENT:
        db.session.delete(booking)
    payment.mark_failed()
    db.session.commit()

    log_event("PAYMENT_CANCELLED", user_id=g.user.id, entity="payment", entity_id=payment.id,
              metadata={"reason": "user_cancelled", "booking_id": payment.booking_id})
    return jsonify(message="Payment cancelled"), 200


@payments_bp.post("/operator/bookings/<int:booking_id>/mark-paid")
@require_roles(OPERATOR, SUPERVISOR)
def mark_paid(booking_id: int):
    if not gateway_enabled("cash"):
        return jsonify(error="Cash payments are disabled"), 403

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404
    if booking.status == STATUS_PAID:
        return jsonify(error="Booking already paid"), 400

    confirm_payment(booking, "cash", payment_id=f"cash_{booking.id}", processed_by=g.ctx.user_id)

    payment = Payment(
        booking_id=booking.id,
        user_id=booking.user_id,
        provider="cash",
        amount=int(booking.amount or 0),
        currency=booking.currency or current_app.config.get("PAYMENT_CURRENCY", "MXN"),
        status=PAYMENT_PAID,
        recorded_by=g.ctx.user_id,
        paid_at=booking.payment_completed_at,
    )
    db.session.add(payment)
    db.session.commit()

    log_event("PAYMENT_CASH_RECORDED", user_id=g.ctx.user_id, entity="booking", entity_id=booking.id,
              metadata={"payment_id": payment.id})
    return jsonify(booking.to_dict()), 200
