from flask import Blueprint, request, jsonify, current_app, g

from models.booking import Booking
from models.court import Court
from security.session import load_selection, save_selection, clear_selection
from services import booking_queries as queries
from services.booking_commands import submit_booking, cancel_booking
from services.reaper import get_discarder
from services.selection import BookingSelection, SelectionError, SelectionStage
from utils.auth_context import current_context, login_required
from utils.audit import log_event
from utils.timezone import parse_day

booking_bp = Blueprint("booking", __name__)


def _discard():
    return get_discarder(current_app).discard


def _day_arg(value):
    if not value:
        return None, (jsonify(error="date is required (YYYY-MM-DD)"), 400)
    try:
        return parse_day(value), None
    except ValueError:
        return None, (jsonify(error="Invalid date. Use YYYY-MM-DD"), 400)


# ---------- catalogue ----------
@booking_bp.get("/court-types")
@login_required
def list_court_types():
    return jsonify([t.to_dict() for t in queries.enabled_court_types()]), 200


@booking_bp.get("/courts")
@login_required
def list_courts():
    court_type = request.args.get("court_type")
    if court_type:
        courts = queries.courts_for_type(court_type)
    else:
        courts = Court.query.filter_by(is_active=True).order_by(Court.name.asc()).all()
    return jsonify([c.to_dict() for c in courts]), 200


# ---------- availability ----------
@booking_bp.get("/bookings")
@login_required
def bookings_on_date():
    day, err = _day_arg(request.args.get("date"))
    if err:
        return err
    rows = queries.bookings_for_date(day, discard=_discard())
    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.get("/availability")
@login_required
def availability():
    day, err = _day_arg(request.args.get("date"))
    if err:
        return err
    court_type = request.args.get("court_type")
    if not court_type:
        return jsonify(error="court_type is required"), 400
    court_id = request.args.get("court_id", type=int)

    result = queries.day_availability(day, court_type, court_id=court_id, discard=_discard())
    # echoed so the client can drop responses older than its latest request
    result["seq"] = request.args.get("seq", type=int)
    return jsonify(result), 200


@booking_bp.get("/bookings/active-count")
@login_required
def active_count():
    court_type = request.args.get("court_type")
    rule = queries.booking_rule_for(court_type) if court_type else None
    count = queries.count_active_bookings(g.user.id, court_type)
    return jsonify(
        court_type=court_type,
        active_bookings=count,
        max_active_bookings=rule.max_active_bookings if rule else None,
    ), 200


# ---------- players: hold / cancel ----------
@booking_bp.post("/bookings")
@login_required
def create_booking():
    data = request.get_json(silent=True) or {}
    court_id = data.get("court_id")
    time_str = data.get("time")
    if not court_id or not time_str:
        return jsonify(error="court_id, date and time are required"), 400
    if not isinstance(court_id, int):
        return jsonify(error="court_id must be an integer"), 400
    day, err = _day_arg(data.get("date"))
    if err:
        return err

    ctx = current_context()
    booking = submit_booking(ctx, court_id, day, time_str, discard=_discard())
    log_event("BOOKING_HOLD_CREATE", user_id=ctx.user_id, entity="booking", entity_id=booking.id,
              metadata={"court_id": booking.court_id, "start_time": booking.start_time.isoformat()})
    return jsonify(booking.to_dict()), 201


@booking_bp.get("/bookings/me")
@login_required
def my_bookings():
    status = request.args.get("status")  # paid / pending_payment
    q = Booking.query.filter_by(user_id=g.user.id)
    if status:
        q = q.filter_by(status=status)
    rows = q.order_by(Booking.start_time.desc()).all()
    return jsonify([b.to_dict() for b in rows]), 200


@booking_bp.post("/bookings/<int:booking_id>/cancel")
@login_required
def cancel(booking_id: int):
    ctx = current_context()
    booking = cancel_booking(ctx, booking_id)
    log_event("BOOKING_CANCEL", user_id=ctx.user_id, entity="booking", entity_id=booking_id,
              metadata={"status": booking.status})
    return jsonify(message="Cancelled"), 200


# ---------- guided selection flow ----------
def _load_flow(ctx) -> BookingSelection:
    types = queries.enabled_court_type_names()
    data = load_selection(ctx.session_id)
    if data:
        return BookingSelection.from_dict(data, types, queries.courts_for_type)
    return BookingSelection(types, queries.courts_for_type)


def _seq_arg():
    seq = request.args.get("seq", type=int)
    if seq is None and request.is_json:
        seq = (request.get_json(silent=True) or {}).get("seq")
    return seq if isinstance(seq, int) else None


def _store_flow(ctx, sel: BookingSelection):
    # The selection is rebuilt on every request, so ordering of overlapping
    # responses is left to the client through the echoed seq.
    body = None
    if sel.day is not None and sel.court_type is not None:
        body = queries.day_availability(sel.day, sel.court_type, court_id=sel.court_id, discard=_discard())
        sel.set_occupied(body["occupied"])

    save_selection(ctx.session_id, sel.to_dict())
    out = sel.to_dict()
    out["slots"] = body["slots"] if body else []
    out["seq"] = _seq_arg()
    return jsonify(out), 200


@booking_bp.get("/booking/selection")
@login_required
def get_selection():
    ctx = current_context()
    return _store_flow(ctx, _load_flow(ctx))


@booking_bp.post("/booking/selection/date")
@login_required
def select_date():
    data = request.get_json(silent=True) or {}
    day, err = _day_arg(data.get("date"))
    if err:
        return err
    ctx = current_context()
    sel = _load_flow(ctx)
    sel.select_date(day)
    return _store_flow(ctx, sel)


@booking_bp.post("/booking/selection/court-type")
@login_required
def select_court_type():
    data = request.get_json(silent=True) or {}
    ctx = current_context()
    sel = _load_flow(ctx)
    sel.select_court_type((data.get("court_type") or "").strip())
    return _store_flow(ctx, sel)


@booking_bp.post("/booking/selection/court")
@login_required
def select_court():
    data = request.get_json(silent=True) or {}
    court_id = data.get("court_id")
    if not isinstance(court_id, int):
        return jsonify(error="court_id required"), 400
    ctx = current_context()
    sel = _load_flow(ctx)
    sel.select_court(court_id)
    return _store_flow(ctx, sel)


@booking_bp.post("/booking/selection/time")
@login_required
def select_time():
    data = request.get_json(silent=True) or {}
    ctx = current_context()
    sel = _load_flow(ctx)
    sel.select_time(data.get("time"))
    return _store_flow(ctx, sel)


@booking_bp.post("/booking/selection/reset")
@login_required
def reset_selection():
    ctx = current_context()
    sel = _load_flow(ctx)
    sel.back_to_type_selection()
    return _store_flow(ctx, sel)


@booking_bp.post("/booking/selection/submit")
@login_required
def submit_selection():
    ctx = current_context()
    sel = _load_flow(ctx)
    if sel.stage != SelectionStage.TIME_SELECTED:
        raise SelectionError("Select a date, court type, court and time before submitting")

    try:
        booking = submit_booking(ctx, sel.court_id, sel.day, sel.time, discard=_discard())
    finally:
        # the flow ends with the attempt, whatever its outcome
        clear_selection(ctx.session_id)

    log_event("BOOKING_HOLD_CREATE", user_id=ctx.user_id, entity="booking", entity_id=booking.id,
              metadata={"court_id": booking.court_id, "start_time": booking.start_time.isoformat(), "via": "selection"})
    return jsonify(booking.to_dict()), 201
