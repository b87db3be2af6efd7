"""
Root pytest configuration for backend tests.

Provides:
- Shared fixtures (app, db_session, client) on an in-memory SQLite database
- add_rows fixture for staging rows built with tests/factories.py
- Clean airlock env/config for every test
"""

import sys
from pathlib import Path

# Add backend directory to Python path so imports like
# `from scrapers.airlock.evaluator import ...` and `from utils.normalize import ...` work
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

import pytest

AIRLOCK_ENV_VARS = (
    "AIRLOCK_AUTO_PROMOTE_ENABLED",
    "AIRLOCK_SANITY_CHECKS_ENABLED",
    "AIRLOCK_ANOMALY_CHECKS_ENABLED",
    "AIRLOCK_ANOMALY_THRESHOLD_SIGMA",
    "AIRLOCK_SWEEP_BATCH_LIMIT",
    "AIRLOCK_TOLERANCES_PATH",
    "AIRLOCK_FEE_INCREASE_MAX_PCT",
    "AIRLOCK_FEE_DECREASE_MAX_PCT",
    "AIRLOCK_DEADLINE_SHIFT_MAX_DAYS",
    "AIRLOCK_QUOTA_DROP_MAX_PCT",
    "AIRLOCK_BLOCK_ON_RULE_MUTATION",
    "AIRLOCK_BLOCK_ON_SPECIES_REMOVAL",
    "AIRLOCK_WARN_ON_SPECIES_ADDED",
)


@pytest.fixture(autouse=True)
def clean_airlock_env(monkeypatch):
    """Every test starts from default tolerances and kill switches."""
    from services.airlock_config import reset_tolerances_cache

    for name in AIRLOCK_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_tolerances_cache()
    yield
    reset_tolerances_cache()


@pytest.fixture
def app():
    """Create test Flask application backed by in-memory SQLite."""
    from app import create_app
    from models.database import db

    app = create_app({
        "SQLALCHEMY_DATABASE_URI": "sqlite://",
        "TESTING": True,
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def db_session(app):
    from models.database import db
    return db.session


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def add_rows(db_session):
    """Insert rows and commit; returns the rows."""
    def _add(*rows):
        db_session.add_all(rows)
        db_session.commit()
        return rows
    return _add
