"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from finledger.infrastructure.database.session import get_db
from finledger.services.financing import FinancingService
from finledger.services.investments import InvestmentService
from finledger.services.ledger import AccountService, TransactionLifecycle


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_account_service(db: Session = Depends(get_db)) -> AccountService:
    return AccountService(db)


def get_transaction_lifecycle(db: Session = Depends(get_db)) -> TransactionLifecycle:
    return TransactionLifecycle(db)


def get_investment_service(db: Session = Depends(get_db)) -> InvestmentService:
    return InvestmentService(db)


def get_financing_service(db: Session = Depends(get_db)) -> FinancingService:
    return FinancingService(db)
