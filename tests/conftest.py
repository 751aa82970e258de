# tests/conftest.py
import os
import tempfile
from datetime import datetime, timedelta

import pytest

from app import create_app
from config import Config
from models import db
from models.booking import Booking, STATUS_PAID, STATUS_PENDING_PAYMENT
from models.court import Court
from models.user import User, Role
from security.csrf import CSRF_COOKIE, CSRF_HEADER
from security.password import hash_password
from services.reaper import HoldDiscarder, get_discarder
from utils.roles import USER


class SyncExecutor:
    """Runs submitted work inline so discards are visible to the test at once."""

    def __init__(self):
        self.calls = []

    def submit(self, fn, *args, **kwargs):
        self.calls.append(args)
        fn(*args, **kwargs)

    def shutdown(self, wait=True):
        pass


@pytest.fixture(scope="function")
def app():
    # temp DB
    fd, path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = "test-secret"
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{path}"
        BCRYPT_ROUNDS = 4
        STRIPE_SECRET_KEY = "sk_test_dummy"
        STRIPE_WEBHOOK_SECRET = "whsec_dummy"
        STRIPE_SUCCESS_URL = "https://example.com/success"
        STRIPE_CANCEL_URL = "https://example.com/cancel"
        LOG_LEVEL = "WARNING"

    app = create_app(TestConfig)
    get_discarder(app).shutdown(wait=False)
    app.extensions["hold_discarder"] = HoldDiscarder(app, executor=SyncExecutor())

    with app.app_context():
        yield app
        db.session.remove()
        db.engine.dispose()

    os.remove(path)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def sync_executor(app):
    return get_discarder(app).executor




# Factories
@pytest.fixture
def make_user(app):
    def _make_user(email="player@example.com", password="correct-horse", roles=(USER,), full_name="Player One"):
        u = User(email=email, password_hash=hash_password(password), full_name=full_name)
        u.roles = Role.query.filter(Role.name.in_(list(roles))).all()
        db.session.add(u)
        db.session.commit()
        return u
    return _make_user


@pytest.fixture
def make_court(app):
    def _make_court(name="Tennis 1", court_type="tennis", is_active=True):
        c = Court(name=name, court_type=court_type, is_active=is_active)
        db.session.add(c)
        db.session.commit()
        return c
    return _make_court


@pytest.fixture
def make_booking(app):
    def _make_booking(user, court, start, status=STATUS_PAID, expires_at=None, amount=0):
        if status == STATUS_PENDING_PAYMENT and expires_at is None:
            expires_at = datetime.utcnow() + timedelta(minutes=10)
        b = Booking(
            user_id=user.id,
            court_id=court.id,
            start_time=start,
            end_time=start + timedelta(hours=1),
            status=status,
            expires_at=expires_at,
            amount=amount,
            currency="MXN",
        )
        db.session.add(b)
        db.session.commit()
        return b
    return _make_booking


@pytest.fixture
def login(client):
    """Log ``email`` in on the shared test client; returns headers carrying the CSRF token."""
    def _login(email="player@example.com", password="correct-horse"):
        resp = client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        cookie = client.get_cookie(CSRF_COOKIE)
        return {CSRF_HEADER: cookie.value}
    return _login
