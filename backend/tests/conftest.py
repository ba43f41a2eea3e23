"""
Pytest fixtures for billing backend tests.

Provides test database setup, account/customer fixtures, and test client.
"""

import pytest

from billing import create_app
from billing.extensions import db
from billing.services import account_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LEDGER_EDIT_POLICY': 'delta',
        'IDENTIFIER_FALLBACK_ENABLED': True,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['LEDGER_EDIT_POLICY'] = 'delta'
        app.config['IDENTIFIER_FALLBACK_ENABLED'] = True


@pytest.fixture(scope='function')
def account(db_session):
    """Business in Maharashtra, below the Rs 5 Cr turnover bracket."""
    return account_service.create_account(
        name="Acme Traders",
        state="Maharashtra",
        gstin="27ABCDE1234F1Z5",
    )


@pytest.fixture(scope='function')
def other_account(db_session):
    """Second tenant, used for isolation checks."""
    return account_service.create_account(name="Beta Supplies", state="Karnataka")


@pytest.fixture(scope='function')
def local_customer(db_session, account):
    """Unregistered customer in the supplier's own state."""
    return account_service.create_customer(account.id, {"name": "Local Retail", "state": "Maharashtra"})


@pytest.fixture(scope='function')
def interstate_customer(db_session, account):
    """Unregistered customer in another state."""
    return account_service.create_customer(account.id, {"name": "Karnataka Stores", "state": "Karnataka"})


@pytest.fixture(scope='function')
def registered_customer(db_session, account):
    """GST-registered customer in the supplier's own state."""
    return account_service.create_customer(
        account.id,
        {"name": "Registered Buyer", "state": "Maharashtra", "gstin": "27AAACR5055K1Z7"},
    )


def line(description="Consulting", hsn_code="998311", quantity=1, rate="1000", gst_rate=18):
    """One JSON line item as the API receives it (rupees, GST %)."""
    return {
        "description": description,
        "hsn_code": hsn_code,
        "quantity": quantity,
        "rate": rate,
        "gst_rate": gst_rate,
    }
