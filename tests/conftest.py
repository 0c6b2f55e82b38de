import itertools
from unittest.mock import Mock

import pytest
from sqlalchemy import StaticPool, create_engine
from sqlalchemy.orm import sessionmaker

import relaydesk.models  # noqa: F401
from relaydesk.database import Base
from relaydesk.services.agent_pool import AgentPool
from relaydesk.services.routing_service import RoutingEngine


@pytest.fixture
def sync_engine():
    """SQLite in-memory engine shared across threads."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(sync_engine):
    return sessionmaker(bind=sync_engine, autocommit=False, autoflush=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def pool():
    return AgentPool()


@pytest.fixture
def transport():
    """Telegram transport fake: every send returns a fresh message id."""
    transport = Mock()
    message_ids = itertools.count(1000)
    transport.send_text.side_effect = lambda *args, **kwargs: next(message_ids)
    transport.send_voice.side_effect = lambda *args, **kwargs: next(message_ids)
    transport.resolve_file.return_value = "https://api.telegram.org/file/bottoken/voice/file_1.oga"
    transport.download_file.return_value = b"OggS-audio"
    transport.send_message.return_value = {"ok": True, "result": {"message_id": 1}}
    return transport


@pytest.fixture
def transcriber():
    transcriber = Mock()
    transcriber.transcribe.return_value = "where is my order"
    return transcriber


@pytest.fixture
def routing_engine(pool, transport, transcriber):
    return RoutingEngine(pool, transport, transcriber)


@pytest.fixture
def make_agent(db_session, pool):
    def _make_agent(external_id: int, name: str = "Agent", active: bool = False):
        agent = pool.add(db_session, external_id, name).value
        if active:
            pool.activate(db_session, agent.id)
        return agent

    return _make_agent
