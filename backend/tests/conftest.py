"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.market_data import get_market_data_service, get_quote_scheduler
from database import Base, get_db
from main import app
from services.market_data_service import MarketDataService
from services.quote_scheduler import QuoteScheduler
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import asset, portfolio, second_portfolio  # noqa: F401
from tests.fixtures.mocks import (
    SAMPLE_QUOTES,
    FakeClock,
    FakeIntervalTimer,
    MockMarketDataProvider,
)


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="mock_provider")
def mock_provider_fixture():
    """Equity provider with sample quotes."""
    return MockMarketDataProvider(quotes=SAMPLE_QUOTES)


@pytest.fixture(name="market_data_service")
def market_data_service_fixture(mock_provider):
    """MarketDataService wired to mock providers only."""
    return MarketDataService(
        provider=mock_provider,
        crypto_provider=MockMarketDataProvider(name="mock_crypto"),
    )


@pytest.fixture(name="fake_timer")
def fake_timer_fixture():
    return FakeIntervalTimer()


@pytest.fixture(name="quote_scheduler")
def quote_scheduler_fixture(market_data_service, fake_timer):
    """Scheduler on a fake clock (a Saturday) and a hand-driven timer."""
    return QuoteScheduler(
        fetcher=market_data_service.fetch_quotes,
        clock=FakeClock(),
        timer=fake_timer,
        open_interval=30,
        closed_interval=300,
        is_crypto=market_data_service.is_crypto,
    )


@pytest.fixture(name="client")
def client_fixture(db, market_data_service, quote_scheduler):
    """Create a test client with the test database and mock market data."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_market_data_service] = lambda: market_data_service
    app.dependency_overrides[get_quote_scheduler] = lambda: quote_scheduler
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
