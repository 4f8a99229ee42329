from datetime import datetime

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import scout_agent.models  # noqa: F401  registers tables
from scout_agent.config import Settings
from scout_agent.models import Frequency, Scout, User, UserPreferences


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def engine():
    """In-memory SQLite database with fresh tables for each test.

    StaticPool keeps one connection so every session sees the same data.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return lambda: Session(engine, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def config():
    return Settings(
        _env_file=None,
        firecrawl_api_key="fc-fallback",
        anthropic_api_key="sk-ant-test",
        resend_api_key="re_test",
        posthog_api_key="",
        database_url="sqlite://",
        daily_cap_timezone="UTC",
        app_url="https://scouts.example.com",
        admin_email_domain="@admin.example.com",
    )


@pytest.fixture
def no_sleep():
    return lambda seconds: None


@pytest.fixture
def user(db_session):
    u = User(email="ada@example.com", api_token="token-ada")
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


@pytest.fixture
def other_user(db_session):
    u = User(email="grace@example.com", api_token="token-grace")
    db_session.add(u)
    db_session.commit()
    db_session.refresh(u)
    return u


def make_scout(session, user_id: str, **overrides) -> Scout:
    fields = dict(
        user_id=user_id,
        title="Apartments in Lisbon",
        goal="Find new 2-bedroom apartments under 1500 EUR",
        description="Rental listings in central Lisbon",
        search_queries=["lisbon 2 bedroom apartment rent", "alfama apartment rent"],
        location={"city": "Lisbon", "latitude": 38.72, "longitude": -9.14},
        frequency=Frequency.daily,
        is_active=True,
    )
    fields.update(overrides)
    scout = Scout(**fields)
    session.add(scout)
    session.commit()
    session.refresh(scout)
    return scout


def make_preferences(session, user_id: str, **fields) -> UserPreferences:
    prefs = UserPreferences(user_id=user_id, **fields)
    session.add(prefs)
    session.commit()
    session.refresh(prefs)
    return prefs


@pytest.fixture
def scout(db_session, user):
    return make_scout(db_session, user.id)


@pytest.fixture
def now():
    return datetime(2026, 3, 10, 12, 0, 0)
