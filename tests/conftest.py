import os
# Ensure the app factory picks the Testing config & SQLite memory DB
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PAYSTACK_SECRET_KEY", "sk_test_secret")
# ProductionConfig reads these at import time; provide test-only values
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import json
import pytest
from payhook import create_app
from payhook.extensions import db, limiter
from payhook.models import User
from payhook.security.signatures import compute_signature

TEST_SECRET = "sk_test_secret"

@pytest.fixture(scope="session")
def app():
    app = create_app()
    app.config.update(
        TESTING=True,
        SQLALCHEMY_DATABASE_URI="sqlite:///:memory:",
        PAYSTACK_SECRET_KEY=TEST_SECRET,
    )
    with app.app_context():
        db.create_all()
        db.session.expire_on_commit = False
    yield app
    with app.app_context():
        db.drop_all()

@pytest.fixture()
def client(app):
    return app.test_client()

@pytest.fixture(autouse=True)
def _db_clean(app):
    # Clean BEFORE each test
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()
        limiter.reset()
    app.config["PAYSTACK_SECRET_KEY"] = TEST_SECRET
    yield
    # And AFTER each test (keeps state hermetic even if a test fails mid-transaction)
    with app.app_context():
        db.session.rollback()
        for tbl in reversed(db.metadata.sorted_tables):
            db.session.execute(tbl.delete())
        db.session.commit()

@pytest.fixture()
def user(app):
    with app.app_context():
        u = User(email="ada@example.com", full_name="Ada")
        db.session.add(u)
        db.session.commit()
        return u.id

@pytest.fixture()
def post_event(client):
    """POST a signed envelope to /webhook. Returns the response."""
    def _post(event_type, data, *, ip="127.0.0.1", secret=TEST_SECRET, signature=None):
        body = json.dumps({"event": event_type, "data": data}).encode("utf-8")
        sig = signature if signature is not None else compute_signature(body, secret)
        return client.post(
            "/webhook",
            data=body,
            headers={"Content-Type": "application/json", "X-Paystack-Signature": sig},
            environ_base={"REMOTE_ADDR": ip},
        )
    return _post
