import pytest

from tests.fakes import FakeReplyChannel, FakeStore


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_reply():
    return FakeReplyChannel()


@pytest.fixture
def mock_env(monkeypatch):
    """Set test environment variables."""
    monkeypatch.setenv("BROKER_URL", "https://broker.example.com")
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
