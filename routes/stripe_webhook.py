import logging
from datetime import datetime

import stripe
from flask import Blueprint, request, jsonify, current_app

from models import db
from models.booking import Booking, STATUS_PENDING_PAYMENT
from models.payment import Payment, PAYMENT_PAID
from services.booking_commands import confirm_payment
from services.booking_gate import BookingRejected
from utils.audit import log_event

logger = logging.getLogger(__name__)

webhook_bp = Blueprint("webhook", __name__, url_prefix="/webhooks")


def _booking_for(payment, meta):
    """The hold ``payment`` was started for, or None once that hold is gone."""
    booking = Booking.query.get(payment.booking_id) if payment.booking_id else None
    if not payment.belongs_to(booking):
        return None
    meta_user = meta.get("user_id")
    if meta_user and meta_user != str(booking.user_id):
        return None
    return booking


def _find_payment(session_id, meta):
    payment = None
    payment_id = meta.get("payment_id")
    if payment_id:
        payment = Payment.query.get(int(payment_id))
    if not payment and session_id:
        payment = Payment.query.filter_by(stripe_session_id=session_id).first()
    return payment


@webhook_bp.post("/stripe")
def stripe_webhook():
    endpoint_secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    sig_header = request.headers.get("Stripe-Signature")
    payload = request.data

    if not endpoint_secret:
        return jsonify(error="Webhook secret not configured"), 500

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, endpoint_secret)
    except (ValueError, stripe.SignatureVerificationError):
        return jsonify(error="Invalid webhook signature"), 400

    event_type = event.get("type")
    if event_type not in ("checkout.session.completed", "checkout.session.expired"):
        return jsonify(received=True), 200

    session = event["data"]["object"]
    session_id = session.get("id")
    meta = session.get("metadata", {}) or {}

    payment = _find_payment(session_id, meta)
    if payment is None:
        logger.warning("Stripe event %s for unknown payment (session %s)", event_type, session_id)
        return jsonify(received=True), 200

    booking = _booking_for(payment, meta)

    if event_type == "checkout.session.completed":
        if payment.status == PAYMENT_PAID:
            return jsonify(received=True), 200
        if booking is None:
            # the hold was reaped before the money arrived
            payment.mark_failed()
            db.session.commit()
            logger.warning("Payment %s completed for a booking that no longer exists", payment.id)
            log_event("PAYMENT_ORPHANED", entity="payment", entity_id=payment.id,
                      metadata={"stripe_session_id": session_id})
            return jsonify(received=True), 200
        try:
            confirm_payment(booking, "stripe", payment_id=session_id)
        except BookingRejected as exc:
            payment.mark_failed()
            db.session.commit()
            logger.warning("Payment %s not applied to booking %s: %s", payment.id, booking.id, exc.code)
            log_event("PAYMENT_REJECTED", entity="payment", entity_id=payment.id,
                      metadata={"stripe_session_id": session_id, "reason": exc.code})
            return jsonify(received=True), 200

        payment.mark_paid(datetime.utcnow())
        db.session.commit()
        log_event("PAYMENT_PAID", entity="payment", entity_id=payment.id,
                  metadata={"stripe_session_id": session_id, "booking_id": booking.id})
    else:
        if payment.status != PAYMENT_PAID:
            payment.mark_failed()
            if booking is not None and booking.status == STATUS_PENDING_PAYMENT:
                db.session.delete(booking)
            db.session.commit()
            log_event("PAYMENT_EXPIRED", entity="payment", entity_id=payment.id,
                      metadata={"stripe_session_id": session_id, "booking_id": payment.booking_id})

    return jsonify(received=True), 200
