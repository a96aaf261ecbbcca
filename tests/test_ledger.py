from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from payhook.extensions import db
from payhook.models import PaymentTransaction
from payhook.services import ledger


def _data(ref="ref_l1", **extra):
    data = {"reference": ref, "amount": 15050, "currency": "NGN", "gateway_response": "Declined"}
    data.update(extra)
    return data


def test_record_transaction_inserts_once(app, user):
    with app.app_context():
        assert ledger.record_transaction(user, "ref_l1", _data(), "success") is True
        db.session.commit()
        assert ledger.record_transaction(user, "ref_l1", _data(), "success") is False
        db.session.commit()

        rows = db.session.query(PaymentTransaction).all()
        assert len(rows) == 1
        assert rows[0].amount == Decimal("150.50")
        assert rows[0].currency == "NGN"
        assert rows[0].failure_reason is None


def test_failed_transaction_keeps_gateway_reason(app, user):
    with app.app_context():
        ledger.record_transaction(user, "ref_f", _data("ref_f"), "failed")
        db.session.commit()
        txn = db.session.query(PaymentTransaction).filter_by(transaction_reference="ref_f").one()
        assert txn.failure_reason == "Declined"


def test_currency_defaults_from_config(app, user):
    with app.app_context():
        data = _data("ref_c")
        del data["currency"]
        ledger.record_transaction(user, "ref_c", data, "success")
        db.session.commit()
        assert db.session.query(PaymentTransaction).filter_by(transaction_reference="ref_c").one().currency == "ZAR"


def test_concurrent_duplicate_insert_is_treated_as_processed(app, user, monkeypatch):
    with app.app_context():
        ledger.record_transaction(user, "ref_race", _data("ref_race"), "success")
        db.session.commit()

        # Simulate the loser of a race: pre-check saw nothing, insert hits the unique index
        calls = []
        real = ledger.is_recorded

        def _stale_then_real(reference):
            calls.append(reference)
            return False if len(calls) == 1 else real(reference)
        monkeypatch.setattr(ledger, "is_recorded", _stale_then_real)

        assert ledger.record_transaction(user, "ref_race", _data("ref_race"), "success") is False
        assert db.session.query(PaymentTransaction).count() == 1


def test_other_integrity_errors_propagate(app, user):
    with app.app_context():
        # CHECK constraint violation, not a duplicate reference
        with pytest.raises(IntegrityError):
            ledger.record_transaction(user, "ref_bad", _data("ref_bad"), "refunded")
        db.session.rollback()
        assert db.session.query(PaymentTransaction).count() == 0
