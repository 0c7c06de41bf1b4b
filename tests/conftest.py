import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from wager_ledger.core.database import get_db, init_database, make_engine
from wager_ledger.main import app
from wager_ledger.services.transfer_service import (
    TransferResult,
    TransferStatus,
    get_transfer_client,
)


class FakeTransferClient:
    """Payout service double answering from a script, success by default."""

    def __init__(self):
        self.script = []
        self.calls = []
        # called while the transfer is in flight, after funds are held
        self.while_sending = None

    def answer(self, *results):
        self.script.extend(results)

    def transfer(self, wallet_address, amount, reference):
        self.calls.append((wallet_address, amount, reference))
        if self.while_sending is not None:
            self.while_sending()
        result = self.script.pop(0) if self.script else TransferResult(
            TransferStatus.SUCCESS, reference=f"sig-{len(self.calls)}"
        )
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_database(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def transfers():
    return FakeTransferClient()


@pytest.fixture
def client(session_factory, transfers):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_transfer_client] = lambda: transfers
    yield TestClient(app)
    app.dependency_overrides.clear()
