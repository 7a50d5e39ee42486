"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from finledger.api.main import create_app
from finledger.infrastructure.database.models import Account, Base
from finledger.infrastructure.database.session import get_db
from finledger.services.financing import FinancingService
from finledger.services.investments import InvestmentService
from finledger.services.ledger import AccountService, TransactionLifecycle


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USER_ID = "user_ana"
OTHER_USER_ID = "user_bruno"


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def account_service(db: Session) -> AccountService:
    return AccountService(db)


@pytest.fixture
def lifecycle(db: Session) -> TransactionLifecycle:
    return TransactionLifecycle(db)


@pytest.fixture
def investment_service(db: Session) -> InvestmentService:
    return InvestmentService(db)


@pytest.fixture
def financing_service(db: Session) -> FinancingService:
    return FinancingService(db)


@pytest.fixture
def make_account(account_service: AccountService) -> Callable[..., Account]:
    """Factory for accounts with an opening balance in cents"""

    def _make(name: str = "Checking", balance_cents: int = 0, user_id: str = USER_ID) -> Account:
        return account_service.create_account(user_id, name, balance_cents)

    return _make


@pytest.fixture
def start_date() -> date:
    return date(2024, 1, 15)
