"""
Shared pytest fixtures for the IRIS test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - scientist / module: Pre-created directory and reference rows
"""

import pytest

from iris import create_app
from iris.models import db as _db
from iris.models.certification import CertificationModule
from iris.models.scientist import Scientist


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def scientist():
    s = Scientist(name="Ada Byron", email="ada@lab.example.org", job_title="Research Scientist")
    _db.session.add(s)
    _db.session.commit()
    return s


@pytest.fixture()
def module():
    m = CertificationModule(name="Good Clinical Practice", is_core=True, expiration_months=36)
    _db.session.add(m)
    _db.session.commit()
    return m
