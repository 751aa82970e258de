from flask import current_app

from models import db
from models.user import Role
from models.court_type import AvailableCourtType
from models.booking_rule import BookingRule
from models.court_type_settings import CourtTypeSettings
from models.payment_setting import PaymentGatewaySetting, GATEWAYS
from utils.roles import DEFAULT_ROLES

DEFAULT_COURT_TYPES = [
    ("tennis", "Tenis"),
    ("padel", "Pádel"),
    ("football", "Fútbol"),
]

def seed_roles():
    existing = {r.name for r in Role.query.all()}
    for name in DEFAULT_ROLES:
        if name not in existing:
            db.session.add(Role(name=name))
    db.session.commit()

def seed_defaults():
    """Court types, rules, settings and gateways with config defaults. Idempotent."""
    cfg = current_app.config
    types = {t.type_name for t in AvailableCourtType.query.all()}
    rules = {r.court_type for r in BookingRule.query.all()}
    settings = {s.court_type for s in CourtTypeSettings.query.all()}

    for type_name, display_name in DEFAULT_COURT_TYPES:
        if type_name not in types:
            db.session.add(AvailableCourtType(type_name=type_name, display_name=display_name, is_enabled=True))
        if type_name not in rules:
            db.session.add(BookingRule(
                court_type=type_name,
                max_active_bookings=cfg.get("DEFAULT_MAX_ACTIVE_BOOKINGS", 2),
                max_days_ahead=cfg.get("DEFAULT_MAX_DAYS_AHEAD", 7),
            ))
        if type_name not in settings:
            db.session.add(CourtTypeSettings(
                court_type=type_name,
                operating_hours_start=cfg.get("DEFAULT_OPERATING_START", 8),
                operating_hours_end=cfg.get("DEFAULT_OPERATING_END", 22),
            ))

    gateways = {p.gateway for p in PaymentGatewaySetting.query.all()}
    for name in GATEWAYS:
        if name not in gateways:
            db.session.add(PaymentGatewaySetting(gateway=name, is_enabled=(name == "cash")))

    db.session.commit()
