from datetime import datetime
from typing import Optional, Tuple

from flask import Blueprint, jsonify, g, request
from sqlalchemy.exc import IntegrityError

from models import db
from models.booking import Booking
from models.booking_rule import BookingRule
from models.court import Court, COURT_TYPES
from models.court_maintenance import CourtMaintenance
from models.court_type import AvailableCourtType
from models.court_type_settings import CourtTypeSettings
from models.payment_setting import PaymentGatewaySetting, GATEWAYS
from models.special_booking import SpecialBooking, EVENT_TYPES, PRICE_TYPES
from models.user import User, Role
from security.rbac import require_roles
from services import booking_queries as queries
from services.booking_gate import WEEKDAYS
from services.reaper import purge_expired_holds
from utils.audit import log_event
from utils.roles import ADMIN, OPERATOR, SUPERVISOR, filter_role_names
from utils.timezone import localize, parse_day, to_utc_naive

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


def _int_field(data, name, minimum=0):
    value = data.get(name)
    if value is None:
        return None, None
    try:
        value = int(value)
    except (TypeError, ValueError):
        return None, f"{name} must be an integer"
    if value < minimum:
        return None, f"{name} must be >= {minimum}"
    return value, None


def _venue_datetime(value: str) -> datetime:
    # ISO local venue time, e.g. "2026-01-20T18:00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = localize(dt)
    return to_utc_naive(dt)


# ---------- court types ----------
@admin_bp.get("/court-types")
@require_roles(ADMIN)
def list_court_types():
    rows = AvailableCourtType.query.order_by(AvailableCourtType.display_name.asc()).all()
    return jsonify([t.to_dict() for t in rows]), 200


@admin_bp.post("/court-types/<type_name>/toggle")
@require_roles(ADMIN)
def toggle_court_type(type_name: str):
    data = request.get_json(silent=True) or {}
    row = AvailableCourtType.query.filter_by(type_name=type_name).first()
    if not row:
        return jsonify(error="Court type not found"), 404

    enabled = data.get("is_enabled")
    row.is_enabled = (not row.is_enabled) if enabled is None else bool(enabled)
    db.session.commit()

    log_event("COURT_TYPE_TOGGLE", user_id=g.user.id, entity="court_type", entity_id=type_name,
              metadata={"is_enabled": row.is_enabled})
    return jsonify(row.to_dict()), 200


# ---------- courts ----------
@admin_bp.post("/courts")
@require_roles(ADMIN)
def create_court():
    data = request.get_json(silent=True) or {}
    name = (data.get("name") or "").strip()
    court_type = (data.get("court_type") or "").strip().lower()
    if not name:
        return jsonify(error="Court name required"), 400
    if court_type not in COURT_TYPES:
        return jsonify(error=f"court_type must be one of {', '.join(COURT_TYPES)}"), 400

    court = Court(name=name, court_type=court_type)
    db.session.add(court)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return jsonify(error="Court name already exists"), 409

    log_event("COURT_CREATE", user_id=g.user.id, entity="court", entity_id=court.id)
    return jsonify(court.to_dict()), 201


@admin_bp.get("/courts")
@require_roles(ADMIN)
def list_courts():
    rows = Court.query.order_by(Court.court_type.asc(), Court.name.asc()).all()
    return jsonify([dict(c.to_dict(), is_active=c.is_active) for c in rows]), 200


@admin_bp.post("/courts/<int:court_id>/deactivate")
@require_roles(ADMIN)
def deactivate_court(court_id: int):
    court = Court.query.get(court_id)
    if not court:
        return jsonify(error="Court not found"), 404

    court.is_active = False
    db.session.commit()

    log_event("COURT_DEACTIVATE", user_id=g.user.id, entity="court", entity_id=court_id)
    return jsonify(message="Court deactivated"), 200


# ---------- booking rules ----------
@admin_bp.get("/booking-rules")
@require_roles(ADMIN)
def list_booking_rules():
    rows = BookingRule.query.order_by(BookingRule.court_type.asc()).all()
    return jsonify([r.to_dict() for r in rows]), 200


@admin_bp.put("/booking-rules/<court_type>")
@require_roles(ADMIN)
def upsert_booking_rule(court_type: str):
    if court_type not in COURT_TYPES:
        return jsonify(error="Unknown court type"), 404
    data = request.get_json(silent=True) or {}

    rule = BookingRule.query.filter_by(court_type=court_type).first()
    if rule is None:
        rule = BookingRule(court_type=court_type)
        db.session.add(rule)

    for field, minimum in (("max_active_bookings", 1), ("max_days_ahead", 0), ("min_cancellation_hours", 0)):
        value, err = _int_field(data, field, minimum)
        if err:
            db.session.rollback()
            return jsonify(error=err), 400
        if value is not None:
            setattr(rule, field, value)
    if "allow_cancellation" in data:
        rule.allow_cancellation = bool(data["allow_cancellation"])

    db.session.commit()
    log_event("BOOKING_RULE_UPDATE", user_id=g.user.id, entity="booking_rule", entity_id=court_type,
              metadata=rule.to_dict())
    return jsonify(rule.to_dict()), 200


# ---------- court type settings ----------
@admin_bp.get("/court-type-settings")
@require_roles(ADMIN)
def list_court_type_settings():
    rows = CourtTypeSettings.query.order_by(CourtTypeSettings.court_type.asc()).all()
    return jsonify([s.to_dict() for s in rows]), 200


@admin_bp.put("/court-type-settings/<court_type>")
@require_roles(ADMIN)
def upsert_court_type_settings(court_type: str):
    if court_type not in COURT_TYPES:
        return jsonify(error="Unknown court type"), 404
    data = request.get_json(silent=True) or {}

    settings = CourtTypeSettings.query.filter_by(court_type=court_type).first()
    if settings is None:
        settings = CourtTypeSettings(court_type=court_type)
        db.session.add(settings)

    values = {}
    for field, minimum in (("operating_hours_start", 0), ("operating_hours_end", 1),
                           ("price_per_hour", 0), ("advance_booking_days", 0)):
        value, err = _int_field(data, field, minimum)
        if err:
            db.session.rollback()
            return jsonify(error=err), 400
        if value is not None:
            values[field] = value

    current_start = settings.operating_hours_start if settings.operating_hours_start is not None else 8
    current_end = settings.operating_hours_end if settings.operating_hours_end is not None else 22
    start = values.get("operating_hours_start", current_start)
    end = values.get("operating_hours_end", current_end)
    if start >= end or end > 24:
        db.session.rollback()
        return jsonify(error="Operating hours must satisfy start < end <= 24"), 400

    days = data.get("operating_days")
    if days is not None:
        if not isinstance(days, list) or any(d not in WEEKDAYS for d in days):
            db.session.rollback()
            return jsonify(error=f"operating_days must be a list of {', '.join(WEEKDAYS)}"), 400
        settings.operating_days = ",".join(days)

    for field, value in values.items():
        setattr(settings, field, value)

    db.session.commit()
    log_event("COURT_TYPE_SETTINGS_UPDATE", user_id=g.user.id, entity="court_type_settings",
              entity_id=court_type, metadata=settings.to_dict())
    return jsonify(settings.to_dict()), 200


# ---------- maintenance ----------
@admin_bp.post("/maintenance")
@require_roles(ADMIN)
def create_maintenance():
    data = request.get_json(silent=True) or {}
    court_id = data.get("court_id")
    if not court_id or not data.get("start_time") or not data.get("end_time"):
        return jsonify(error="court_id, start_time, end_time are required"), 400

    try:
        st = _venue_datetime(data["start_time"])
        et = _venue_datetime(data["end_time"])
    except (TypeError, ValueError):
        return jsonify(error="Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00"), 400
    if et <= st:
        return jsonify(error="end_time must be after start_time"), 400

    court = Court.query.get(court_id)
    if not court:
        return jsonify(error="Court not found"), 404

    row = CourtMaintenance(
        court_id=court.id,
        start_time=st,
        end_time=et,
        reason=(data.get("reason") or "").strip() or None,
        created_by=g.user.id,
    )
    db.session.add(row)
    db.session.commit()

    log_event("MAINTENANCE_CREATE", user_id=g.user.id, entity="court_maintenance", entity_id=row.id)
    return jsonify(id=row.id), 201


@admin_bp.get("/maintenance")
@require_roles(ADMIN, SUPERVISOR)
def list_maintenance():
    rows = (
        CourtMaintenance.query
        .filter(CourtMaintenance.is_active.is_(True), CourtMaintenance.end_time >= datetime.utcnow())
        .order_by(CourtMaintenance.start_time.asc())
        .all()
    )
    return jsonify([
        {
            "id": m.id,
            "court_id": m.court_id,
            "start_time": m.start_time.isoformat(),
            "end_time": m.end_time.isoformat(),
            "reason": m.reason,
        }
        for m in rows
    ]), 200


@admin_bp.post("/maintenance/<int:maintenance_id>/deactivate")
@require_roles(ADMIN)
def deactivate_maintenance(maintenance_id: int):
    row = CourtMaintenance.query.get(maintenance_id)
    if not row:
        return jsonify(error="Maintenance window not found"), 404
    row.is_active = False
    db.session.commit()

    log_event("MAINTENANCE_DEACTIVATE", user_id=g.user.id, entity="court_maintenance", entity_id=maintenance_id)
    return jsonify(message="Maintenance window deactivated"), 200


# ---------- special bookings ----------
def _apply_special_booking(row: SpecialBooking, data) -> Optional[Tuple[str, int]]:
    """Copy validated fields from ``data`` onto ``row``, or return ``(error, status)``."""
    if "court_id" in data:
        court = Court.query.get(data["court_id"]) if isinstance(data["court_id"], int) else None
        if not court:
            return "Court not found", 404
        row.court_id = court.id

    if "event_type" in data:
        if data["event_type"] not in EVENT_TYPES:
            return f"event_type must be one of {', '.join(EVENT_TYPES)}", 400
        row.event_type = data["event_type"]

    if "title" in data:
        title = (data["title"] or "").strip()
        if not title:
            return "title must not be empty", 400
        row.title = title[:120]
    if "description" in data:
        row.description = (data["description"] or "").strip() or None

    try:
        if "start_time" in data:
            row.start_time = _venue_datetime(data["start_time"])
        if "end_time" in data:
            row.end_time = _venue_datetime(data["end_time"])
    except (TypeError, ValueError):
        return "Invalid datetime format. Use ISO e.g. 2026-01-20T18:00:00", 400
    if row.start_time is None or row.end_time is None or row.end_time <= row.start_time:
        return "end_time must be after start_time", 400

    price_type = data.get("price_type", row.price_type or "normal")
    if price_type not in PRICE_TYPES:
        return f"price_type must be one of {', '.join(PRICE_TYPES)}", 400
    row.price_type = price_type
    if price_type == "custom":
        value, err = _int_field(data, "custom_price", 0)
        if err:
            return err, 400
        if value is None and row.custom_price is None:
            return "custom_price is required for a custom price", 400
        if value is not None:
            row.custom_price = value
    else:
        row.custom_price = None

    if "recurrence_pattern" in data:
        days = data["recurrence_pattern"] or []
        if not isinstance(days, list) or any(d not in WEEKDAYS for d in days):
            return f"recurrence_pattern must be a list of {', '.join(WEEKDAYS)}", 400
        row.recurrence_pattern = ",".join(days) or None

    if "reference_user_id" in data:
        ref = data["reference_user_id"]
        if ref is not None and not (isinstance(ref, int) and User.query.get(ref)):
            return "Reference user not found", 404
        row.reference_user_id = ref
    return None


@admin_bp.post("/special-bookings")
@require_roles(ADMIN)
def create_special_booking():
    data = request.get_json(silent=True) or {}
    missing = [f for f in ("court_id", "event_type", "title", "start_time", "end_time") if not data.get(f)]
    if missing:
        return jsonify(error=f"Missing fields: {', '.join(missing)}"), 400

    row = SpecialBooking(created_by=g.user.id)
    problem = _apply_special_booking(row, data)
    if problem:
        return jsonify(error=problem[0]), problem[1]
    db.session.add(row)
    db.session.commit()

    log_event("SPECIAL_BOOKING_CREATE", user_id=g.user.id, entity="special_booking", entity_id=row.id,
              metadata={"court_id": row.court_id, "event_type": row.event_type})
    return jsonify(row.to_dict()), 201


@admin_bp.get("/special-bookings")
@require_roles(ADMIN, SUPERVISOR)
def list_special_bookings():
    day_str = request.args.get("date")
    if day_str:
        try:
            day = parse_day(day_str)
        except ValueError:
            return jsonify(error="Invalid date format (use YYYY-MM-DD)"), 400
        rows = queries.special_bookings_for_date(day)
    else:
        rows = (
            SpecialBooking.query
            .filter(SpecialBooking.is_active.is_(True))
            .order_by(SpecialBooking.start_time.desc())
            .all()
        )
    return jsonify([s.to_dict() for s in rows]), 200


@admin_bp.put("/special-bookings/<int:special_id>")
@require_roles(ADMIN)
def update_special_booking(special_id: int):
    row = SpecialBooking.query.get(special_id)
    if not row:
        return jsonify(error="Special booking not found"), 404
    data = request.get_json(silent=True) or {}

    problem = _apply_special_booking(row, data)
    if problem:
        db.session.rollback()
        return jsonify(error=problem[0]), problem[1]
    db.session.commit()

    log_event("SPECIAL_BOOKING_UPDATE", user_id=g.user.id, entity="special_booking", entity_id=row.id,
              metadata={"fields": sorted(data)})
    return jsonify(row.to_dict()), 200


@admin_bp.post("/special-bookings/<int:special_id>/deactivate")
@require_roles(ADMIN)
def deactivate_special_booking(special_id: int):
    row = SpecialBooking.query.get(special_id)
    if not row:
        return jsonify(error="Special booking not found"), 404
    row.is_active = False
    db.session.commit()

    log_event("SPECIAL_BOOKING_DEACTIVATE", user_id=g.user.id, entity="special_booking", entity_id=special_id)
    return jsonify(message="Special booking deactivated"), 200


@admin_bp.delete("/special-bookings/<int:special_id>")
@require_roles(ADMIN)
def delete_special_booking(special_id: int):
    row = SpecialBooking.query.get(special_id)
    if not row:
        return jsonify(error="Special booking not found"), 404
    db.session.delete(row)
    db.session.commit()

    log_event("SPECIAL_BOOKING_DELETE", user_id=g.user.id, entity="special_booking", entity_id=special_id)
    return jsonify(message="Special booking deleted"), 200


# ---------- payment gateways ----------
@admin_bp.get("/payment-gateways")
@require_roles(ADMIN)
def list_payment_gateways():
    rows = PaymentGatewaySetting.query.order_by(PaymentGatewaySetting.gateway.asc()).all()
    return jsonify([p.to_dict() for p in rows]), 200


@admin_bp.put("/payment-gateways/<gateway>")
@require_roles(ADMIN)
def update_payment_gateway(gateway: str):
    if gateway not in GATEWAYS:
        return jsonify(error="Unknown payment gateway"), 404
    data = request.get_json(silent=True) or {}

    row = PaymentGatewaySetting.query.filter_by(gateway=gateway).first()
    if row is None:
        row = PaymentGatewaySetting(gateway=gateway)
        db.session.add(row)
    if "is_enabled" in data:
        row.is_enabled = bool(data["is_enabled"])
    if "test_mode" in data:
        row.test_mode = bool(data["test_mode"])
    row.updated_by = g.user.id
    db.session.commit()

    log_event("PAYMENT_GATEWAY_UPDATE", user_id=g.user.id, entity="payment_gateway", entity_id=gateway,
              metadata=row.to_dict())
    return jsonify(row.to_dict()), 200


# ---------- staff: bookings ----------
@admin_bp.get("/bookings")
@require_roles(SUPERVISOR, OPERATOR)
def daily_bookings():
    date_str = request.args.get("date")
    if not date_str:
        return jsonify(error="date is required (YYYY-MM-DD)"), 400
    try:
        day = parse_day(date_str)
    except ValueError:
        return jsonify(error="Invalid date. Use YYYY-MM-DD"), 400

    rows = queries.bookings_for_date(day)
    court_type = request.args.get("court_type")
    if court_type:
        rows = [b for b in rows if b.court and b.court.court_type == court_type]

    log_event("STAFF_BOOKINGS_VIEW", user_id=g.user.id, metadata={"date": date_str})
    return jsonify([b.to_dict() for b in rows]), 200


@admin_bp.post("/bookings/purge-expired")
@require_roles(ADMIN)
def purge_expired():
    deleted = purge_expired_holds()
    log_event("EXPIRED_HOLDS_PURGE", user_id=g.user.id, metadata={"deleted": deleted})
    return jsonify(deleted=deleted), 200


@admin_bp.post("/bookings/<int:booking_id>/admin_cancel")
@require_roles(ADMIN)
def admin_cancel_booking(booking_id: int):
    data = request.get_json(silent=True) or {}
    reason = (data.get("reason") or "").strip() or "Admin cancellation"

    booking = Booking.query.get(booking_id)
    if not booking:
        return jsonify(error="Booking not found"), 404

    db.session.delete(booking)
    db.session.commit()

    log_event("ADMIN_BOOKING_CANCEL", user_id=g.user.id, entity="booking", entity_id=booking_id,
              metadata={"reason": reason})
    return jsonify(message="Cancelled by admin"), 200


# ---------- users ----------
@admin_bp.get("/users")
@require_roles(ADMIN)
def list_users():
    role_filter = (request.args.get("role") or "").strip().upper()
    q = User.query
    if role_filter:
        q = q.join(User.roles).filter(Role.name == role_filter)

    users = q.order_by(User.created_at.desc()).limit(200).all()
    return jsonify([
        {
            "id": u.id,
            "email": u.email,
            "full_name": u.full_name,
            "member_id": u.member_id,
            "is_active": u.is_active,
            "roles": filter_role_names(u.roles),
            "created_at": u.created_at.isoformat(),
        }
        for u in users
    ]), 200


@admin_bp.post("/users/<int:user_id>/roles")
@require_roles(ADMIN)
def update_user_roles(user_id: int):
    data = request.get_json(silent=True) or {}
    roles = data.get("roles")
    if not isinstance(roles, list) or not roles:
        return jsonify(error="roles must be a non-empty list"), 400

    role_names = []
    for name in roles:
        if isinstance(name, str) and name.strip():
            role_names.append(name.strip().upper())
    if not role_names:
        return jsonify(error="roles must include valid role names"), 400

    user = User.query.get(user_id)
    if not user:
        return jsonify(error="User not found"), 404

    available_roles = Role.query.filter(Role.name.in_(set(role_names))).all()
    missing = set(role_names) - {r.name for r in available_roles}
    if missing:
        return jsonify(error="Unknown role(s)", missing=sorted(missing)), 400

    if user.id == g.user.id and ADMIN not in role_names:
        return jsonify(error="Cannot remove your own ADMIN role"), 403

    user.roles = available_roles
    db.session.commit()

    log_event("ADMIN_UPDATE_ROLES", user_id=g.user.id, entity="user", entity_id=user.id,
              metadata={"roles": role_names})
    return jsonify(message="Roles updated", roles=filter_role_names(role_names)), 200
