"""Pytest configuration and fixtures for test suite."""

import os
import sys
from pathlib import Path

import pytest

# Set test environment BEFORE any other imports
os.environ.setdefault("LEADFLOW_ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "leadflow-test-secret-0123456789abcdef0123456789")

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from database.lead_store import LeadStore
from lead_workflow import LeadLifecycleEngine, NewLead
from rbac.jwt import create_access_token, reset_jwt_secret_cache
from rbac.roles import Role


@pytest.fixture(autouse=True)
def reset_jwt_secret():
    """Make every test read JWT_SECRET fresh."""
    reset_jwt_secret_cache()
    yield
    reset_jwt_secret_cache()


# =============================================================================
# STORE & ENGINE
# =============================================================================

@pytest.fixture
def store(tmp_path):
    """Fresh SQLite-backed store per test."""
    s = LeadStore.for_sqlite(tmp_path / "leads.db")
    yield s
    s.close()


@pytest.fixture
def engine(store):
    return LeadLifecycleEngine(store)


@pytest.fixture
def users(store):
    """One principal per interesting permission profile."""
    return {
        "admin": store.create_user("admin", Role.ADMIN, full_name="Ada Admin"),
        "manager": store.create_user("manager", Role.MANAGER, full_name="Morgan Manager"),
        "agent": store.create_user("agent", Role.AGENT, full_name="Sam Sales"),
        "other_agent": store.create_user("agent2", Role.AGENT, full_name="Riley Sales"),
        "viewer": store.create_user("viewer", Role.VIEWER),
        "designer": store.create_user("designer", Role.DESIGNER),
        # Viewer role, but the override grants lead editing
        "custom": store.create_user(
            "custom", Role.VIEWER, custom_permissions=["view_leads", "edit_leads"]
        ),
        # Agent role, but the override takes edit_leads away
        "restricted_agent": store.create_user(
            "restricted", Role.AGENT, custom_permissions=["view_leads"]
        ),
    }


@pytest.fixture
def make_lead(engine, users):
    """Create an unclaimed lead through the engine."""
    def _make(name: str = "Acme Uniforms", **kwargs):
        return engine.create_lead(users["admin"].id, NewLead(name=name, **kwargs))
    return _make


@pytest.fixture
def claimed_lead(engine, users, make_lead):
    """A lead claimed by the agent, all progress flags false."""
    lead = make_lead()
    return engine.claim_lead(lead.id, users["agent"].id).lead


# =============================================================================
# HTTP
# =============================================================================

@pytest.fixture
def app(store):
    from config.settings import Settings
    from web.app import create_app

    return create_app(
        settings=Settings(environment="test", log_level="WARNING"),
        store=store,
    )


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as c:
        yield c


@pytest.fixture
def auth_headers(users):
    """Build bearer headers for one of the seeded users."""
    def _headers(name: str):
        user = users[name]
        token = create_access_token(user.id, user.username)
        return {"Authorization": f"Bearer {token}"}
    return _headers
