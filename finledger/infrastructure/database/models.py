"""SQLAlchemy ORM models for accounts, ledger transactions, investments and financings"""

from sqlalchemy import (
    BigInteger,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class Account(Base):
    """Account whose balance is maintained exclusively by the ledger writer"""

    __tablename__ = "account"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    balance_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    transactions = relationship("LedgerTransaction", back_populates="account")


class LedgerTransaction(Base):
    """Income or expense movement on one account"""

    __tablename__ = "ledger_transaction"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False, index=True)
    type = Column(Text, nullable=False)  # "income" or "expense"
    amount_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=True)
    transaction_date = Column(Date, nullable=False)
    investment_operation_id = Column(
        Integer, ForeignKey("investment_operation.id"), nullable=True, index=True
    )
    financing_payment_id = Column(
        Integer, ForeignKey("financing_payment.id"), nullable=True, index=True
    )
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    account = relationship("Account", back_populates="transactions")


class InvestmentPosition(Base):
    """Incrementally maintained position per (user, asset)"""

    __tablename__ = "investment_position"
    __table_args__ = (UniqueConstraint("user_id", "asset_name", name="uq_position_user_asset"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    asset_name = Column(Text, nullable=False)
    quantity_units = Column(BigInteger, nullable=False, default=0)  # 1e-4 of a unit
    average_cost_micros = Column(BigInteger, nullable=False, default=0)  # 1e-6 of the currency unit
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class InvestmentOperation(Base):
    """Single buy or sell of an asset"""

    __tablename__ = "investment_operation"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    asset_name = Column(Text, nullable=False, index=True)
    operation_type = Column(Text, nullable=False)  # "buy" or "sell"
    quantity_units = Column(BigInteger, nullable=False)
    unit_price_cents = Column(BigInteger, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    broker = Column(Text, nullable=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False)
    destination_account_id = Column(Integer, ForeignKey("account.id"), nullable=True)
    operation_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class FinancingContract(Base):
    """Installment-based financing with its reconciled outstanding balance"""

    __tablename__ = "financing_contract"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, nullable=False, index=True)
    description = Column(Text, nullable=True)
    principal_cents = Column(BigInteger, nullable=False)
    periodic_rate = Column(Numeric(12, 10), nullable=False)
    term_months = Column(Integer, nullable=False)
    amortization_method = Column(Text, nullable=False)  # "SAC" or "Price"
    start_date = Column(Date, nullable=False)
    current_balance_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="active")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    payments = relationship(
        "FinancingPayment",
        back_populates="financing",
        cascade="all, delete-orphan",
        order_by="FinancingPayment.id",
    )


class FinancingPayment(Base):
    """Payment actually registered against a financing"""

    __tablename__ = "financing_payment"
    __table_args__ = (
        UniqueConstraint("financing_id", "installment_number", name="uq_payment_installment"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    financing_id = Column(Integer, ForeignKey("financing_contract.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Text, nullable=False, index=True)
    account_id = Column(Integer, ForeignKey("account.id"), nullable=False)
    installment_number = Column(Integer, nullable=True)  # NULL for early payments
    payment_type = Column(Text, nullable=False, default="regular")
    payment_cents = Column(BigInteger, nullable=False)
    principal_cents = Column(BigInteger, nullable=False)
    interest_cents = Column(BigInteger, nullable=False)
    balance_before_cents = Column(BigInteger, nullable=False)
    balance_after_cents = Column(BigInteger, nullable=False)
    payment_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    financing = relationship("FinancingContract", back_populates="payments")
