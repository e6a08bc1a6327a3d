"""Finance tools - schemas the model can call and the dispatch registry.

The registry is closed: every tool is a ToolName member mapped to one
handler. Handlers validate their own arguments. A rejected argument raises
ValidationFailure, which dispatch() turns into ordinary result text so the
model can correct itself. Store outages surface as StoreUnavailable and
become error tool results in the loop.
"""
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from finbot.assistant.errors import StoreUnavailable, UnknownTool, ValidationFailure
from finbot.assistant.locks import KeyedLocks
from finbot.config import settings
from finbot.ledger import queries
from finbot.ledger import store as ledger_store
from finbot.ledger.dates import format_day, parse_day_first, parse_flexible, start_of_day, utc_today
from finbot.ledger.models import Account, AccountType, Budget, Transaction, TransactionType
from finbot.ledger.store import LedgerStore
from finbot.llm.types import ToolSchema, WebSearchTool

logger = logging.getLogger(__name__)


class ToolName(str, Enum):
    TRACK_EXPENSE = "trackExpense"
    EDIT_TRANSACTION = "editTransaction"
    DELETE_TRANSACTION = "deleteTransaction"
    CREATE_ACCOUNT = "createAccount"
    UPDATE_ACCOUNT = "updateAccount"
    CREATE_BUDGET = "createBudget"
    DELETE_BUDGET = "deleteBudget"
    GET_DAILY_BUDGET = "getDailyBudget"

    @classmethod
    def parse(cls, name: str) -> "ToolName":
        try:
            return cls(name)
        except ValueError:
            raise UnknownTool(name)


@dataclass
class RecordedTransaction:
    """A transaction written by trackExpense, kept for the turn summary."""
    readable_id: int
    transaction_type: str
    amount: Decimal
    currency: str
    description: str
    day: str


@dataclass
class DispatchResult:
    """Outcome of one tool call."""
    content: str
    recorded: Optional[RecordedTransaction] = None


# ============================================================================
# TOOL SCHEMAS
# ============================================================================

FINANCE_TOOLS: List[ToolSchema] = [
    ToolSchema(
        name=ToolName.TRACK_EXPENSE.value,
        description="Record a financial transaction (expense, income, or transfer). Call once per transaction.",
        input_schema={
            "type": "object",
            "properties": {
                "amount": {"type": "number", "description": "The amount of money (always positive number)"},
                "description": {"type": "string", "description": "Description of the transaction"},
                "accountId": {
                    "type": "integer",
                    "description": "ID of the account to use (e.g. 3). Omit to use the default account",
                },
                "type": {
                    "type": "string",
                    "enum": [t.value for t in TransactionType],
                    "description": "Type of transaction (defaults to expense)",
                },
                "currency": {"type": "string", "description": "Currency code (USD, EUR, GEL, etc.)"},
                "date": {"type": "string", "description": "Date in DD.MM.YYYY format. Omit for today"},
            },
            "required": ["amount", "description"],
        },
    ),
    ToolSchema(
        name=ToolName.EDIT_TRANSACTION.value,
        description="Edit a previously recorded transaction by its ID",
        input_schema={
            "type": "object",
            "properties": {
                "transactionId": {"type": "integer", "description": "ID of the transaction (e.g. 42)"},
                "amount": {"type": "number", "description": "New amount (optional)"},
                "description": {"type": "string", "description": "New description (optional)"},
                "type": {"type": "string", "enum": [t.value for t in TransactionType]},
                "date": {"type": "string", "description": "New date, DD.MM.YYYY or YYYY-MM-DD (optional)"},
            },
            "required": ["transactionId"],
        },
    ),
    ToolSchema(
        name=ToolName.DELETE_TRANSACTION.value,
        description="Delete a transaction by its ID",
        input_schema={
            "type": "object",
            "properties": {
                "transactionId": {"type": "integer", "description": "ID of the transaction (e.g. 42)"},
            },
            "required": ["transactionId"],
        },
    ),
    ToolSchema(
        name=ToolName.CREATE_ACCOUNT.value,
        description="Create a new financial account for the user",
        input_schema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Name of the account (e.g. 'Bank of Georgia', 'Cash')"},
                "type": {"type": "string", "enum": [t.value for t in AccountType]},
                "currency": {"type": "string", "description": "Primary currency for this account"},
                "initialBalance": {"type": "number", "description": "Starting balance (optional, defaults to 0)"},
                "isDefault": {"type": "boolean", "description": "Make this the default account (optional)"},
            },
            "required": ["name", "type", "currency"],
        },
    ),
    ToolSchema(
        name=ToolName.UPDATE_ACCOUNT.value,
        description="Update an existing financial account",
        input_schema={
            "type": "object",
            "properties": {
                "accountId": {"type": "integer", "description": "ID of the account to update"},
                "name": {"type": "string"},
                "type": {"type": "string", "enum": [t.value for t in AccountType]},
                "currency": {"type": "string"},
                "isDefault": {"type": "boolean"},
            },
            "required": ["accountId"],
        },
    ),
    ToolSchema(
        name=ToolName.CREATE_BUDGET.value,
        description="Create a spending budget for one currency over a date range. Only one budget per currency",
        input_schema={
            "type": "object",
            "properties": {
                "totalAmount": {"type": "number", "description": "Total amount for the whole period"},
                "currency": {"type": "string", "description": "Currency code"},
                "startDate": {"type": "string", "description": "YYYY-MM-DD or DD.MM.YYYY"},
                "endDate": {"type": "string", "description": "YYYY-MM-DD or DD.MM.YYYY, after startDate"},
            },
            "required": ["totalAmount", "currency", "startDate", "endDate"],
        },
    ),
    ToolSchema(
        name=ToolName.DELETE_BUDGET.value,
        description="Delete a budget by its ID",
        input_schema={
            "type": "object",
            "properties": {
                "budgetId": {"type": "integer", "description": "ID of the budget"},
            },
            "required": ["budgetId"],
        },
    ),
    ToolSchema(
        name=ToolName.GET_DAILY_BUDGET.value,
        description=(
            "Get the amount available to spend on a day, including surplus or deficit "
            "carried over from previous days of the budget"
        ),
        input_schema={
            "type": "object",
            "properties": {
                "currency": {"type": "string", "description": "Budget currency (optional if only one budget)"},
                "date": {"type": "string", "description": "DD.MM.YYYY or YYYY-MM-DD (optional, defaults to today)"},
            },
            "required": [],
        },
    ),
]


def get_tool_schemas(assistant_type: str, web_search: bool) -> List[Any]:
    """Active tools for a thread: finance tools for finance threads, plus web search if enabled."""
    tools: List[Any] = []
    if assistant_type == "finance":
        tools.extend(FINANCE_TOOLS)
    if web_search:
        tools.append(WebSearchTool(max_uses=settings.WEB_SEARCH_MAX_USES))
    return tools


# ============================================================================
# ARGUMENT HELPERS
# ============================================================================

def _fmt(amount: Any) -> str:
    return f"{Decimal(str(amount)):.2f}"


def _require_int(args: Dict[str, Any], key: str, label: str) -> int:
    value = args.get(key)
    if isinstance(value, bool):
        value = None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationFailure(f"{label} must be a number, e.g. 42. Got: {value!r}")


def _optional_int(args: Dict[str, Any], key: str, label: str) -> Optional[int]:
    if args.get(key) in (None, ""):
        return None
    return _require_int(args, key, label)


def _amount(value: Any, label: str = "Amount") -> Decimal:
    if isinstance(value, bool) or value is None:
        raise ValidationFailure(f"{label} must be a number.")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise ValidationFailure(f"{label} must be a number. Got: {value!r}")
    if not amount.is_finite():
        raise ValidationFailure(f"{label} must be a finite number.")
    return amount


def _currency(value: Any) -> Optional[str]:
    if not value:
        return None
    if not isinstance(value, str) or not value.strip().isalpha():
        raise ValidationFailure(f"Currency must be a code like USD or EUR. Got: {value!r}")
    return value.strip().upper()


def _enum_value(enum_cls: Any, value: Any, label: str) -> str:
    try:
        return enum_cls(value).value
    except ValueError:
        allowed = ", ".join(e.value for e in enum_cls)
        raise ValidationFailure(f"{label} must be one of: {allowed}. Got: {value!r}")


def _balance_effect(transaction_type: str, amount: Decimal) -> Decimal:
    """Signed change a transaction makes to its account balance."""
    if transaction_type == TransactionType.INCOME.value:
        return amount
    return -amount


async def _adjust_balance(session: AsyncSession, account_id: str, delta: Decimal) -> None:
    if delta:
        await session.execute(update(Account).where(Account.id == account_id).values(balance=Account.balance + delta))


async def _clear_default(session: AsyncSession, user_id: str) -> None:
    await session.execute(update(Account).where(Account.user_id == user_id).values(is_default=False))


# ============================================================================
# TRANSACTIONS
# ============================================================================

async def _track_expense(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    amount = abs(_amount(args.get("amount")))
    if amount == 0:
        raise ValidationFailure("Amount must be greater than zero.")

    description = (args.get("description") or "").strip()
    if not description:
        raise ValidationFailure("Description is required.")

    transaction_type = _enum_value(TransactionType, args.get("type") or "expense", "Transaction type")

    account_ref = _optional_int(args, "accountId", "Account ID")
    if account_ref is not None:
        account = await queries.find_account(store, user_id, account_ref)
        if account is None:
            raise ValidationFailure(f"Account {account_ref} not found. Ask the user which account to use.")
    else:
        account = await queries.get_default_account(store, user_id)
        if account is None:
            raise ValidationFailure("The user has no accounts yet. Create an account first with createAccount.")

    if args.get("date"):
        day = parse_day_first(str(args["date"]))
        if day is None:
            raise ValidationFailure(f"Invalid date {args['date']!r}. Use DD.MM.YYYY, e.g. 05.03.2025.")
    else:
        day = utc_today()

    currency = _currency(args.get("currency")) or account.currency

    readable_id = await store.next_sequential_id("transaction")
    async with store.unit_of_work() as session:
        session.add(Transaction(
            readable_id=readable_id,
            user_id=user_id,
            account_id=account.id,
            transaction_type=transaction_type,
            amount=amount,
            currency=currency,
            date=start_of_day(day),
            description=description,
        ))
        if currency == account.currency:
            await _adjust_balance(session, account.id, _balance_effect(transaction_type, amount))

    label = transaction_type.capitalize()
    return DispatchResult(
        content=(
            f"{label} of {_fmt(amount)} {currency} recorded with ID {readable_id} "
            f"on {format_day(day)} ({account.name}): {description}"
        ),
        recorded=RecordedTransaction(
            readable_id=readable_id,
            transaction_type=transaction_type,
            amount=amount,
            currency=currency,
            description=description,
            day=format_day(day),
        ),
    )


async def _edit_transaction(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    readable_id = _require_int(args, "transactionId", "Transaction ID")
    transaction = await queries.find_transaction(store, user_id, readable_id)
    if transaction is None:
        raise ValidationFailure(f"Transaction {readable_id} not found.")

    patch: Dict[str, Any] = {}
    if args.get("amount") is not None:
        amount = abs(_amount(args["amount"]))
        if amount == 0:
            raise ValidationFailure("Amount must be greater than zero.")
        patch["amount"] = amount
    if args.get("description"):
        patch["description"] = str(args["description"]).strip()
    if args.get("type"):
        patch["transaction_type"] = _enum_value(TransactionType, args["type"], "Transaction type")
    if args.get("date"):
        day = parse_flexible(str(args["date"]))
        if day is None:
            raise ValidationFailure(f"Invalid date {args['date']!r}. Use DD.MM.YYYY or YYYY-MM-DD.")
        patch["date"] = start_of_day(day)

    if not patch:
        raise ValidationFailure("Nothing to change. Provide amount, description, type or date.")

    async with store.unit_of_work() as session:
        updated = await session.get(Transaction, transaction.id)
        if updated is None:
            raise ValidationFailure(f"Transaction {readable_id} not found.")
        old_effect = _balance_effect(updated.transaction_type, Decimal(str(updated.amount)))
        for field, value in patch.items():
            setattr(updated, field, value)
        new_effect = _balance_effect(updated.transaction_type, Decimal(str(updated.amount)))

        account = await session.get(Account, updated.account_id)
        if account is not None and account.currency == updated.currency:
            await _adjust_balance(session, account.id, new_effect - old_effect)

    return DispatchResult(
        content=(
            f"Transaction {readable_id} updated: {updated.transaction_type} of "
            f"{_fmt(updated.amount)} {updated.currency} on {format_day(updated.date)} - {updated.description}"
        )
    )


async def _delete_transaction(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    readable_id = _require_int(args, "transactionId", "Transaction ID")
    transaction = await queries.find_transaction(store, user_id, readable_id)
    if transaction is None:
        raise ValidationFailure(f"Transaction {readable_id} not found.")

    async with store.unit_of_work() as session:
        deleted = await session.get(Transaction, transaction.id)
        if deleted is None:
            raise ValidationFailure(f"Transaction {readable_id} not found.")
        await session.delete(deleted)

        account = await session.get(Account, deleted.account_id)
        if account is not None and account.currency == deleted.currency:
            effect = _balance_effect(deleted.transaction_type, Decimal(str(deleted.amount)))
            await _adjust_balance(session, account.id, -effect)

    return DispatchResult(
        content=f"Transaction {readable_id} ({_fmt(deleted.amount)} {deleted.currency}, {deleted.description}) deleted."
    )


# ============================================================================
# ACCOUNTS
# ============================================================================

async def _create_account(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    name = (args.get("name") or "").strip()
    if not name:
        raise ValidationFailure("Account name is required.")
    account_type = _enum_value(AccountType, args.get("type"), "Account type")
    currency = _currency(args.get("currency"))
    if currency is None:
        raise ValidationFailure("Currency is required.")
    balance = _amount(args["initialBalance"], "Initial balance") if args.get("initialBalance") is not None else Decimal("0")
    is_default = bool(args.get("isDefault"))

    readable_id = await store.next_sequential_id("account")
    async with store.unit_of_work() as session:
        if is_default:
            await _clear_default(session, user_id)
        session.add(Account(
            readable_id=readable_id,
            user_id=user_id,
            name=name,
            account_type=account_type,
            currency=currency,
            balance=balance,
            is_default=is_default,
        ))
    return DispatchResult(content=f'Account "{name}" created successfully with ID: {readable_id}')


async def _update_account(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    readable_id = _require_int(args, "accountId", "Account ID")
    account = await queries.find_account(store, user_id, readable_id)
    if account is None:
        raise ValidationFailure(f"Account {readable_id} not found.")

    patch: Dict[str, Any] = {}
    if args.get("name"):
        patch["name"] = str(args["name"]).strip()
    if args.get("type"):
        patch["account_type"] = _enum_value(AccountType, args["type"], "Account type")
    if args.get("currency"):
        patch["currency"] = _currency(args["currency"])
    if args.get("isDefault") is not None:
        patch["is_default"] = bool(args["isDefault"])

    if not patch:
        raise ValidationFailure("Nothing to change. Provide name, type, currency or isDefault.")

    async with store.unit_of_work() as session:
        if patch.get("is_default"):
            await _clear_default(session, user_id)
        await session.execute(update(Account).where(Account.id == account.id).values(**patch))
    return DispatchResult(content=f"Account {readable_id} updated successfully.")


# ============================================================================
# BUDGETS
# ============================================================================

# Serializes the exists-check + insert of createBudget per (user, currency)
_budget_locks = KeyedLocks()


async def _create_budget(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    total = _amount(args.get("totalAmount"), "Total amount")
    if total <= 0:
        raise ValidationFailure("Total amount must be greater than zero.")
    currency = _currency(args.get("currency"))
    if currency is None:
        raise ValidationFailure("Currency is required.")

    start = parse_flexible(args.get("startDate"))
    end = parse_flexible(args.get("endDate"))
    if start is None or end is None:
        raise ValidationFailure("Dates must be in YYYY-MM-DD or DD.MM.YYYY format.")
    if end <= start:
        raise ValidationFailure("End date must be after start date.")

    async with _budget_locks.hold((user_id, currency)):
        existing = await store.find_one(Budget, Budget.user_id == user_id, Budget.currency == currency)
        if existing is not None:
            return DispatchResult(
                content=(
                    f"A budget in {currency} already exists (ID {existing.readable_id}, "
                    f"{format_day(existing.start_date)} - {format_day(existing.end_date)}). "
                    f"Delete it first to create a new one."
                )
            )

        readable_id = await store.next_sequential_id("budget")
        budget = await store.create(
            Budget,
            readable_id=readable_id,
            user_id=user_id,
            total_amount=total,
            currency=currency,
            start_date=start,
            end_date=end,
        )

    status = await queries.get_budget_status(store, budget, start)
    return DispatchResult(
        content=(
            f"Budget {budget.readable_id} created: {_fmt(total)} {currency} from {format_day(start)} "
            f"to {format_day(end)}, {_fmt(status.base_daily)} {currency} per day."
        )
    )


async def _delete_budget(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    readable_id = _require_int(args, "budgetId", "Budget ID")
    budget = await queries.find_budget(store, user_id, readable_id)
    if budget is None:
        raise ValidationFailure(f"Budget {readable_id} not found.")
    await store.delete_by_id(Budget, budget.id)
    return DispatchResult(content=f"Budget {readable_id} ({budget.currency}) deleted.")


async def _get_daily_budget(store: LedgerStore, user_id: str, args: Dict[str, Any]) -> DispatchResult:
    currency = _currency(args.get("currency"))
    if args.get("date"):
        target = parse_flexible(str(args["date"]))
        if target is None:
            raise ValidationFailure(f"Invalid date {args['date']!r}. Use DD.MM.YYYY or YYYY-MM-DD.")
    else:
        target = utc_today()

    budgets = await queries.get_user_budgets(store, user_id, currency)
    if not budgets:
        suffix = f" in {currency}" if currency else ""
        raise ValidationFailure(f"No budget found{suffix}. Create one with createBudget.")

    lines = []
    for budget in budgets:
        status = await queries.get_budget_status(store, budget, target)
        lines.append(format_budget_status(budget, status, target))
    return DispatchResult(content="\n".join(lines))


def format_budget_status(budget: Budget, status: Any, target: date) -> str:
    cur = budget.currency
    if target < budget.start_date or target > budget.end_date:
        return (
            f"Budget {budget.readable_id} ({cur}) runs {format_day(budget.start_date)} - "
            f"{format_day(budget.end_date)}; {format_day(target)} is outside the period."
        )
    return (
        f"Budget {budget.readable_id} ({cur}) on {format_day(target)}: available {_fmt(status.allocation)} {cur} "
        f"(base {_fmt(status.base_daily)}, carried over {_fmt(status.rollover)}), "
        f"spent that day {_fmt(status.spent_on_target)}, left {_fmt(status.remaining)} {cur}."
    )


# ============================================================================
# DISPATCHER
# ============================================================================

ToolHandler = Callable[[LedgerStore, str, Dict[str, Any]], Awaitable[DispatchResult]]

TOOL_HANDLERS: Dict[ToolName, ToolHandler] = {
    ToolName.TRACK_EXPENSE: _track_expense,
    ToolName.EDIT_TRANSACTION: _edit_transaction,
    ToolName.DELETE_TRANSACTION: _delete_transaction,
    ToolName.CREATE_ACCOUNT: _create_account,
    ToolName.UPDATE_ACCOUNT: _update_account,
    ToolName.CREATE_BUDGET: _create_budget,
    ToolName.DELETE_BUDGET: _delete_budget,
    ToolName.GET_DAILY_BUDGET: _get_daily_budget,
}


async def dispatch_tool(
    store: LedgerStore,
    user_id: str,
    tool_name: str,
    tool_args: Dict[str, Any],
) -> DispatchResult:
    """
    Dispatch a tool call to its handler.

    Returns:
        DispatchResult whose content is a confirmation or a validation message

    Raises:
        UnknownTool: the name is not a registered tool
        StoreUnavailable: the ledger store failed
    """
    name = ToolName.parse(tool_name)
    handler = TOOL_HANDLERS[name]
    logger.info(f"Dispatching {name.value} for user {user_id}")

    try:
        return await handler(store, user_id, tool_args or {})
    except ValidationFailure as e:
        logger.info(f"{name.value} rejected arguments: {e}")
        return DispatchResult(content=str(e))
    except ledger_store.StoreUnavailable as e:
        raise StoreUnavailable(f"Ledger storage is unavailable: {e}") from e
