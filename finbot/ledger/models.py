"""Ledger models: accounts, transactions, budgets and sequence counters."""
from enum import Enum

from sqlalchemy import Column, String, DateTime, Date, Numeric, Boolean, Integer, Text
from sqlalchemy.sql import func

from finbot.database import Base, generate_id


class AccountType(str, Enum):
    BANK = "bank"
    CASH = "cash"
    CRYPTO = "crypto"


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class Account(Base):
    """A user's money container (bank account, cash wallet, crypto wallet)."""

    __tablename__ = "accounts"

    id = Column(String, primary_key=True, default=lambda: generate_id("acct"))
    readable_id = Column(Integer, nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    name = Column(String, nullable=False)
    currency = Column(String, nullable=False)
    account_type = Column(String, nullable=False)  # "bank" | "cash" | "crypto"
    balance = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    is_default = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Transaction(Base):
    """
    A single ledger movement.

    Amount is always a non-negative magnitude; direction comes from
    transaction_type.
    """

    __tablename__ = "transactions"

    id = Column(String, primary_key=True, default=lambda: generate_id("txn"))
    readable_id = Column(Integer, nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    account_id = Column(String, nullable=False, index=True)

    transaction_type = Column(String, nullable=False)  # "income" | "expense" | "transfer"
    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    description = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Budget(Base):
    """A spending budget for one currency over an inclusive date range."""

    __tablename__ = "budgets"

    id = Column(String, primary_key=True, default=lambda: generate_id("budget"))
    readable_id = Column(Integer, nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)

    total_amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SequenceCounter(Base):
    """Last issued sequential business ID per record type."""

    __tablename__ = "sequence_counters"

    name = Column(String, primary_key=True)
    value = Column(Integer, nullable=False, default=0)


# Record types that carry a sequential readable_id
SEQUENCED_MODELS = {
    "account": Account,
    "transaction": Transaction,
    "budget": Budget,
}
