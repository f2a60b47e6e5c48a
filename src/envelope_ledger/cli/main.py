"""
Envelope Ledger CLI

Command-line interface for budgeting, transactions and reconciliation.

Usage:
    envelope init --db budget.db
    envelope account create --name Checking --balance 1000.00
    envelope category create --name Groceries --group Needs
    envelope budget assign --category Groceries --amount 500 --period 2025-01
    envelope target set --category Rent --amount 1200 --cadence monthly
    envelope target auto-fill --period 2025-02
    envelope transaction add --account Checking --amount -60.00 --category Groceries
    envelope reconcile status --account Checking --date 2025-01-31 --balance 940.00
    envelope reconcile complete --account Checking --date 2025-01-31 --balance 940.00
"""

import json
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Optional

import typer
from typing_extensions import Annotated

from envelope_ledger.envelope import Envelope
from envelope_ledger.kernel.errors import EnvelopeError, ValidationError, format_cli_error
from envelope_ledger.kernel.logging import (
    configure_logging,
    generate_correlation_id,
    get_logger,
    set_correlation_id,
)
from envelope_ledger.kernel.money import Money
from envelope_ledger.kernel.settings import LedgerSettings
from envelope_ledger.ledger.models import TargetCadence, TransactionStatus
from envelope_ledger.reconcile.models import ReconciliationSession
from envelope_ledger.transactions.service import TransactionFilter

logger = get_logger(__name__)

app = typer.Typer(
    name="envelope",
    help="Envelope Ledger - zero-based budgeting and reconciliation",
    add_completion=False,
)

# Sub-apps
account_app = typer.Typer(help="Account management commands")
category_app = typer.Typer(help="Category and group commands")
budget_app = typer.Typer(help="Budget allocation commands")
transaction_app = typer.Typer(help="Transaction commands")
transfer_app = typer.Typer(help="Transfer commands")
target_app = typer.Typer(help="Budget target commands")
reconcile_app = typer.Typer(help="Statement reconciliation commands")

app.add_typer(account_app, name="account")
app.add_typer(category_app, name="category")
app.add_typer(budget_app, name="budget")
app.add_typer(target_app, name="target")
app.add_typer(transaction_app, name="transaction")
app.add_typer(transfer_app, name="transfer")
app.add_typer(reconcile_app, name="reconcile")

# Global state
DEFAULT_DB = Path(".envelope.db")

DbOption = Annotated[Path, typer.Option("--db", help="Database path")]
PeriodOption = Annotated[
    Optional[str],
    typer.Option("--period", help="Budget period (2025-01, 2025-W03, ...); defaults to current"),
]
JsonOption = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def settings_path_for(db: Path) -> Path:
    """Settings live beside the database: budget.db -> budget.db.json"""
    return db.with_name(f"{db.name}.json")


def get_envelope(db_path: Path) -> Envelope:
    """Open an existing ledger, configuring logging from its settings"""
    if not db_path.exists():
        typer.echo(f"Error: Database not found: {db_path}", err=True)
        typer.echo(f"Run 'envelope init --db {db_path}' to initialize", err=True)
        raise typer.Exit(1)
    with handle_errors():
        settings = LedgerSettings.load(settings_path_for(db_path))
        configure_logging(json_output=settings.json_logs, log_level=settings.log_level)
        set_correlation_id(generate_correlation_id())
        return Envelope(str(db_path), settings=settings)


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn ledger errors into a message on stderr and the error's exit code"""
    try:
        yield
    except EnvelopeError as e:
        logger.debug("Command rejected", error_type=type(e).__name__)
        typer.echo(format_cli_error(e), err=True)
        raise typer.Exit(e.exit_code) from e


def parse_date(raw: Optional[str], default: date) -> date:
    if raw is None:
        return default
    try:
        return date.fromisoformat(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid date '{raw}' (expected YYYY-MM-DD)") from e


def echo_json(data: object) -> None:
    typer.echo(json.dumps(data, indent=2, default=str))


# Initialization command


@app.command()
def init(
    db: DbOption = DEFAULT_DB,
    default_groups: Annotated[
        bool,
        typer.Option(
            "--default-groups/--no-default-groups",
            help="Create the Bills/Needs/Wants/Savings groups",
        ),
    ] = True,
) -> None:
    """Initialize a new ledger database"""
    if db.exists():
        typer.echo(f"Error: Database already exists: {db}", err=True)
        raise typer.Exit(1)

    with handle_errors():
        settings_path = settings_path_for(db)
        settings = LedgerSettings.load(settings_path)
        settings.save(settings_path)
        env = Envelope(str(db), settings=settings)
        groups = env.create_default_groups() if default_groups else []

    typer.echo(f"✓ Initialized ledger: {db}")
    typer.echo(f"  Settings: {settings_path}")
    if groups:
        typer.echo(f"  Category groups: {', '.join(g.name for g in groups)}")


# Account commands


@account_app.command("create")
def account_create(
    name: Annotated[str, typer.Option("--name", help="Account name")],
    account_type: Annotated[
        str,
        typer.Option("--type", help="checking, savings, credit_card, cash, ..."),
    ] = "checking",
    balance: Annotated[
        str, typer.Option("--balance", help="Starting balance")
    ] = "0",
    off_budget: Annotated[
        bool, typer.Option("--off-budget", help="Track only; exclude from budgeting")
    ] = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Create an account"""
    env = get_envelope(db)
    with handle_errors():
        account = env.create_account(
            name, account_type, Money.parse(balance), on_budget=not off_budget
        )

    typer.echo(f"✓ Created account: {account.id}")
    typer.echo(f"  Name: {account.name}")
    typer.echo(f"  Type: {account.account_type.value}")
    typer.echo(f"  Starting balance: {env.format(account.starting_balance)}")
    if not account.on_budget:
        typer.echo("  Off budget")


@account_app.command("list")
def account_list(
    include_archived: Annotated[
        bool, typer.Option("--all", help="Include archived accounts")
    ] = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """List accounts with balances"""
    env = get_envelope(db)
    summaries = env.list_accounts(include_archived)

    if not summaries:
        typer.echo("No accounts")
        return

    typer.echo(f"Accounts ({len(summaries)}):")
    for s in summaries:
        flags = []
        if not s.account.on_budget:
            flags.append("off-budget")
        if s.account.archived:
            flags.append("archived")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        typer.echo(
            f"  {s.account.name}: {env.format(s.balance)} "
            f"(cleared {env.format(s.cleared_balance)}, {s.uncleared_count} uncleared){suffix}"
        )


@account_app.command("archive")
def account_archive(
    account: Annotated[str, typer.Option("--account", help="Account name or ID")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Archive an account"""
    env = get_envelope(db)
    with handle_errors():
        archived = env.archive_account(env.find_account(account).id)
    typer.echo(f"✓ Archived account: {archived.name}")


# Category commands


@category_app.command("group-create")
def category_group_create(
    name: Annotated[str, typer.Option("--name", help="Group name")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Create a category group"""
    env = get_envelope(db)
    with handle_errors():
        group = env.create_group(name)
    typer.echo(f"✓ Created group: {group.id}")
    typer.echo(f"  Name: {group.name}")


@category_app.command("create")
def category_create(
    name: Annotated[str, typer.Option("--name", help="Category name")],
    group: Annotated[str, typer.Option("--group", help="Group name or ID")],
    goal: Annotated[
        Optional[str], typer.Option("--goal", help="Per-period funding goal")
    ] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Create a category"""
    env = get_envelope(db)
    with handle_errors():
        category = env.create_category(
            name,
            env.find_group(group).id,
            Money.parse(goal) if goal is not None else None,
        )
    typer.echo(f"✓ Created category: {category.id}")
    typer.echo(f"  Name: {category.name}")
    if category.goal_amount is not None:
        typer.echo(f"  Goal: {env.format(category.goal_amount)}")


@category_app.command("list")
def category_list(db: DbOption = DEFAULT_DB) -> None:
    """List categories by group"""
    env = get_envelope(db)
    groups = env.list_groups()

    if not groups:
        typer.echo("No category groups")
        return

    for group in groups:
        typer.echo(f"{group.name}:")
        categories = env.categories.list_categories_in_group(group.id)
        if not categories:
            typer.echo("  (empty)")
        for category in categories:
            goal = f" (goal {env.format(category.goal_amount)})" if category.goal_amount else ""
            typer.echo(f"  {category.name}{goal}")


# Budget commands


@budget_app.command("assign")
def budget_assign(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    amount: Annotated[str, typer.Option("--amount", help="Budgeted amount")],
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Set a category's budget for a period"""
    env = get_envelope(db)
    with handle_errors():
        target = env.find_category(category)
        allocation = env.assign(target.id, period, Money.parse(amount))
        atb = env.available_to_budget(allocation.period)

    typer.echo(f"✓ Budgeted {env.format(allocation.budgeted)} to {target.name} for {allocation.period}")
    typer.echo(f"  Available to budget: {env.format(atb)}")


@budget_app.command("add")
def budget_add(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    amount: Annotated[str, typer.Option("--amount", help="Amount to add (negative removes)")],
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Add to (or remove from) a category's budget"""
    env = get_envelope(db)
    with handle_errors():
        target = env.find_category(category)
        allocation = env.add(target.id, period, Money.parse(amount))
        atb = env.available_to_budget(allocation.period)

    typer.echo(f"✓ {target.name} now budgeted {env.format(allocation.budgeted)} for {allocation.period}")
    typer.echo(f"  Available to budget: {env.format(atb)}")


@budget_app.command("move")
def budget_move(
    from_category: Annotated[str, typer.Option("--from", help="Source category")],
    to_category: Annotated[str, typer.Option("--to", help="Destination category")],
    amount: Annotated[str, typer.Option("--amount", help="Amount to move")],
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Move budgeted money between categories"""
    env = get_envelope(db)
    with handle_errors():
        source = env.find_category(from_category)
        destination = env.find_category(to_category)
        money = Money.parse(amount)
        env.move(source.id, destination.id, period, money)

    typer.echo(f"✓ Moved {env.format(money)} from {source.name} to {destination.name}")


@budget_app.command("show")
def budget_show(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
    json_output: JsonOption = False,
) -> None:
    """Show one category's budget for a period"""
    env = get_envelope(db)
    with handle_errors():
        target = env.find_category(category)
        summary = env.summary(target.id, period)
        stale = [s for s in env.stale_carryovers(summary.period) if s.category_id == target.id]

    if json_output:
        echo_json(summary.model_dump(mode="json"))
        return

    typer.echo(f"\n{summary.category_name} ({summary.period.describe()})")
    typer.echo(f"  Budgeted: {env.format(summary.budgeted)}")
    typer.echo(f"  Carryover: {env.format(summary.carryover)}")
    typer.echo(f"  Activity: {env.format(summary.activity)}")
    typer.echo(f"  Available: {env.format(summary.available)}")
    if summary.is_overspent():
        typer.echo("  ⚠️  Overspent")
    for item in stale:
        typer.echo(
            f"  ⚠️  Carryover is stale: stored {env.format(item.stored)}, "
            f"previous period now leaves {env.format(item.expected)}. "
            "Run 'envelope budget rollover' to update."
        )


@budget_app.command("overview")
def budget_overview(
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
    json_output: JsonOption = False,
) -> None:
    """Show every category for a period"""
    env = get_envelope(db)
    with handle_errors():
        overview = env.overview(period)

    if json_output:
        echo_json(overview.model_dump(mode="json"))
        return

    typer.echo(f"\nBudget: {overview.period.describe()}")
    typer.echo(f"  Available to budget: {env.format(overview.available_to_budget)}")
    typer.echo(f"  Income: {env.format(overview.income)}")
    typer.echo(f"  Budgeted: {env.format(overview.total_budgeted)}")
    typer.echo(f"  Activity: {env.format(overview.total_activity)}")
    typer.echo(f"  Available: {env.format(overview.total_available)}")

    if overview.categories:
        typer.echo(f"\n  Categories ({len(overview.categories)}):")
    for s in overview.categories:
        marker = " ⚠️" if s.is_overspent() else ""
        typer.echo(
            f"    {s.category_name}: {env.format(s.budgeted)} budgeted, "
            f"{env.format(s.activity)} activity, {env.format(s.available)} available{marker}"
        )


@budget_app.command("rollover")
def budget_rollover(
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Carry the previous period's balances into this one (safe to re-run)"""
    env = get_envelope(db)
    with handle_errors():
        target = env.period(period)
        allocations = env.apply_rollover(target)

    typer.echo(f"✓ Rolled {target.prev()} into {target}")
    for allocation in allocations:
        if not allocation.carryover.is_zero():
            name = env.find_category(allocation.category_id).name
            typer.echo(f"  {name}: {env.format(allocation.carryover)}")


@budget_app.command("overspent")
def budget_overspent(
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """List overspent categories"""
    env = get_envelope(db)
    with handle_errors():
        target = env.period(period)
        overspent = env.overspent(target)

    if not overspent:
        typer.echo(f"No overspent categories in {target}")
        return

    typer.echo(f"Overspent in {target} ({len(overspent)}):")
    for s in overspent:
        typer.echo(f"  {s.category_name}: {env.format(s.available)}")


# Target commands


@target_app.command("set")
def target_set(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    amount: Annotated[str, typer.Option("--amount", help="Amount per cadence")],
    cadence: Annotated[
        TargetCadence, typer.Option("--cadence", help="weekly, monthly, yearly, custom or by_date")
    ] = TargetCadence.MONTHLY,
    days: Annotated[
        Optional[int], typer.Option("--days", help="Interval in days (custom cadence)")
    ] = None,
    by: Annotated[
        Optional[str], typer.Option("--by", help="Deadline YYYY-MM-DD (by_date cadence)")
    ] = None,
    notes: Annotated[str, typer.Option("--notes", help="Notes")] = "",
    db: DbOption = DEFAULT_DB,
) -> None:
    """Set (or replace) a category's budget target"""
    env = get_envelope(db)
    with handle_errors():
        found = env.find_category(category)
        deadline = parse_date(by, date.min) if by is not None else None
        target = env.set_target(
            found.id,
            Money.parse(amount),
            cadence,
            interval_days=days,
            target_date=deadline,
            notes=notes,
        )
        this_period = env.period(None)

    typer.echo(
        f"✓ Target for {found.name}: {env.format(target.amount)} ({target.describe_cadence()})"
    )
    typer.echo(
        f"  Needed for {this_period}: {env.format(target.amount_for_period(this_period))}"
    )


@target_app.command("list")
def target_list(
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
    json_output: JsonOption = False,
) -> None:
    """List active targets and what each needs this period"""
    env = get_envelope(db)
    with handle_errors():
        budget_period = env.period(period)
        rows = [
            (env.find_category(t.category_id), t, env.summary(t.category_id, budget_period))
            for t in env.list_targets()
        ]

    if json_output:
        echo_json(
            [
                {
                    **target.model_dump(mode="json"),
                    "category_name": category.name,
                    "needed": target.amount_for_period(budget_period).cents,
                    "budgeted": summary.budgeted.cents,
                }
                for category, target, summary in rows
            ]
        )
        return

    if not rows:
        typer.echo("No targets set")
        return

    typer.echo(f"Targets for {budget_period.describe()} ({len(rows)}):")
    for category, target, summary in rows:
        needed = target.amount_for_period(budget_period)
        marker = " ✓" if summary.budgeted >= needed else ""
        typer.echo(
            f"  {category.name}: {env.format(target.amount)} {target.describe_cadence().lower()}, "
            f"needs {env.format(needed)}, budgeted {env.format(summary.budgeted)}{marker}"
        )


@target_app.command("show")
def target_show(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Show one category's target"""
    env = get_envelope(db)
    with handle_errors():
        found = env.find_category(category)
        target = env.targets.require_target(found.id)
        budget_period = env.period(period)

    typer.echo(f"\nTarget: {found.name}")
    typer.echo(f"  Amount: {env.format(target.amount)}")
    typer.echo(f"  Cadence: {target.describe_cadence()}")
    typer.echo(f"  Active: {'yes' if target.active else 'no'}")
    typer.echo(
        f"  Needed for {budget_period}: {env.format(target.amount_for_period(budget_period))}"
    )
    if target.notes:
        typer.echo(f"  Notes: {target.notes}")


@target_app.command("delete")
def target_delete(
    category: Annotated[str, typer.Option("--category", help="Category name or ID")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Remove a category's target"""
    env = get_envelope(db)
    with handle_errors():
        found = env.find_category(category)
        removed = env.remove_target(found.id)

    if removed:
        typer.echo(f"✓ Removed target for {found.name}")
    else:
        typer.echo(f"{found.name} has no target")


@target_app.command("auto-fill")
def target_auto_fill(
    period: PeriodOption = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Top up every targeted category to what its target needs"""
    env = get_envelope(db)
    with handle_errors():
        budget_period = env.period(period)
        allocations = env.auto_fill_targets(budget_period)
        names = {a.category_id: env.find_category(a.category_id).name for a in allocations}
        atb = env.available_to_budget(budget_period)

    if not allocations:
        typer.echo(f"No targets to auto-fill for {budget_period}.")
        return

    typer.echo(f"✓ Auto-filled budgets from targets for {budget_period}")
    for allocation in allocations:
        typer.echo(f"  {names[allocation.category_id]}: {env.format(allocation.budgeted)}")
    typer.echo(f"  Available to budget: {env.format(atb)}")


# Transaction commands


@transaction_app.command("add")
def transaction_add(
    account: Annotated[str, typer.Option("--account", help="Account name or ID")],
    amount: Annotated[str, typer.Option("--amount", help="Amount (negative for outflow)")],
    payee: Annotated[str, typer.Option("--payee", help="Payee name")] = "",
    category: Annotated[
        Optional[str], typer.Option("--category", help="Category name or ID")
    ] = None,
    on_date: Annotated[
        Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD); defaults to today")
    ] = None,
    memo: Annotated[str, typer.Option("--memo", help="Memo")] = "",
    cleared: Annotated[
        bool, typer.Option("--cleared", help="Record as already cleared")
    ] = False,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Record a transaction"""
    env = get_envelope(db)
    with handle_errors():
        transaction = env.add_transaction(
            env.find_account(account).id,
            parse_date(on_date, env.time_provider.today()),
            Money.parse(amount),
            payee_name=payee,
            category_id=env.find_category(category).id if category else None,
            memo=memo,
            status=TransactionStatus.CLEARED if cleared else TransactionStatus.PENDING,
        )

    typer.echo(f"✓ Recorded transaction: {transaction.id}")
    typer.echo(f"  {transaction.date} {transaction.payee_name} {env.format(transaction.amount)}")
    typer.echo(f"  Status: {transaction.status.value}")


@transaction_app.command("list")
def transaction_list(
    account: Annotated[
        Optional[str], typer.Option("--account", help="Filter by account")
    ] = None,
    category: Annotated[
        Optional[str], typer.Option("--category", help="Filter by category")
    ] = None,
    status: Annotated[
        Optional[str], typer.Option("--status", help="pending, cleared or reconciled")
    ] = None,
    limit: Annotated[Optional[int], typer.Option("--limit", help="Maximum rows")] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """List transactions, newest first"""
    env = get_envelope(db)
    with handle_errors():
        try:
            status_filter = TransactionStatus(status) if status else None
        except ValueError as e:
            raise ValidationError(f"Unknown status '{status}'") from e
        transactions = env.list_transactions(
            TransactionFilter(
                account_id=env.find_account(account).id if account else None,
                category_id=env.find_category(category).id if category else None,
                status=status_filter,
                limit=limit,
            )
        )

    if not transactions:
        typer.echo("No transactions")
        return

    typer.echo(f"Transactions ({len(transactions)}):")
    for t in transactions:
        lock = " 🔒" if t.is_locked() else ""
        typer.echo(
            f"  {t.id} {t.date} {t.payee_name or '-'} "
            f"{env.format(t.amount)} [{t.status.value}]{lock}"
        )


@transaction_app.command("edit")
def transaction_edit(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    amount: Annotated[Optional[str], typer.Option("--amount", help="New amount")] = None,
    on_date: Annotated[Optional[str], typer.Option("--date", help="New date")] = None,
    payee: Annotated[Optional[str], typer.Option("--payee", help="New payee")] = None,
    category: Annotated[
        Optional[str], typer.Option("--category", help="New category")
    ] = None,
    memo: Annotated[Optional[str], typer.Option("--memo", help="New memo")] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Edit a transaction (transfers update both sides)"""
    env = get_envelope(db)
    with handle_errors():
        current = env.find_transaction(transaction_id)
        transaction = env.edit_transaction(
            current.id,
            on_date=parse_date(on_date, current.date) if on_date else None,
            amount=Money.parse(amount) if amount is not None else None,
            payee_name=payee,
            category_id=env.find_category(category).id if category else None,
            memo=memo,
        )

    typer.echo(f"✓ Updated transaction: {transaction.id}")
    typer.echo(f"  {transaction.date} {transaction.payee_name} {env.format(transaction.amount)}")


def _set_status(db: Path, transaction_id: str, action: str) -> None:
    env = get_envelope(db)
    with handle_errors():
        target = env.find_transaction(transaction_id)
        if action == "clear":
            transaction = env.clear_transaction(target.id)
        elif action == "unclear":
            transaction = env.unclear_transaction(target.id)
        else:
            transaction = env.unlock_transaction(target.id)
    typer.echo(f"✓ {transaction.id}: {transaction.status.value}")


@transaction_app.command("clear")
def transaction_clear(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Mark a transaction cleared"""
    _set_status(db, transaction_id, "clear")


@transaction_app.command("unclear")
def transaction_unclear(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Mark a transaction pending"""
    _set_status(db, transaction_id, "unclear")


@transaction_app.command("unlock")
def transaction_unlock(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Re-open a reconciled transaction for editing"""
    _set_status(db, transaction_id, "unlock")
    typer.echo("  ⚠️  This transaction no longer matches a reconciled statement")


@transaction_app.command("delete")
def transaction_delete(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Delete a transaction (transfers delete both sides)"""
    env = get_envelope(db)
    with handle_errors():
        transaction = env.delete_transaction(env.find_transaction(transaction_id).id)
    typer.echo(f"✓ Deleted transaction: {transaction.id}")


# Transfer commands


@transfer_app.command("create")
def transfer_create(
    from_account: Annotated[str, typer.Option("--from", help="Source account")],
    to_account: Annotated[str, typer.Option("--to", help="Destination account")],
    amount: Annotated[str, typer.Option("--amount", help="Amount to transfer")],
    on_date: Annotated[
        Optional[str], typer.Option("--date", help="Date (YYYY-MM-DD); defaults to today")
    ] = None,
    memo: Annotated[str, typer.Option("--memo", help="Memo")] = "",
    db: DbOption = DEFAULT_DB,
) -> None:
    """Move money between two accounts"""
    env = get_envelope(db)
    with handle_errors():
        result = env.transfer(
            env.find_account(from_account).id,
            env.find_account(to_account).id,
            Money.parse(amount),
            parse_date(on_date, env.time_provider.today()),
            memo,
        )

    typer.echo(f"✓ Transferred {env.format(result.to_transaction.amount)}")
    typer.echo(f"  Out: {result.from_transaction.id} ({result.from_transaction.payee_name})")
    typer.echo(f"  In:  {result.to_transaction.id} ({result.to_transaction.payee_name})")


@transfer_app.command("edit")
def transfer_edit(
    transaction_id: Annotated[str, typer.Option("--id", help="Either side's ID or prefix")],
    amount: Annotated[Optional[str], typer.Option("--amount", help="New amount")] = None,
    on_date: Annotated[Optional[str], typer.Option("--date", help="New date")] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Change a transfer's amount or date on both sides"""
    env = get_envelope(db)
    with handle_errors():
        target = env.find_transaction(transaction_id)
        if amount is None and on_date is None:
            raise ValidationError("Nothing to change: pass --amount and/or --date")
        result = env.transfers.update_transfer(
            target.id,
            Money.parse(amount) if amount is not None else None,
            parse_date(on_date, target.date) if on_date is not None else None,
        )

    typer.echo(f"✓ Updated transfer: {env.format(result.to_transaction.amount)} on {result.to_transaction.date}")


@transfer_app.command("delete")
def transfer_delete(
    transaction_id: Annotated[str, typer.Option("--id", help="Either side's ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Delete both sides of a transfer"""
    env = get_envelope(db)
    with handle_errors():
        result = env.transfers.delete_transfer(env.find_transaction(transaction_id).id)
    typer.echo(
        f"✓ Deleted transfer: {result.from_transaction.id} / {result.to_transaction.id}"
    )


# Reconciliation commands

AccountOption = Annotated[str, typer.Option("--account", help="Account name or ID")]
StatementDateOption = Annotated[str, typer.Option("--date", help="Statement date (YYYY-MM-DD)")]
StatementBalanceOption = Annotated[str, typer.Option("--balance", help="Statement ending balance")]


def _session(env: Envelope, account: str, statement_date: str, balance: str) -> ReconciliationSession:
    return env.reconcile_start(
        env.find_account(account).id,
        parse_date(statement_date, env.time_provider.today()),
        Money.parse(balance),
    )


@reconcile_app.command("status")
def reconcile_status(
    account: AccountOption,
    statement_date: StatementDateOption,
    balance: StatementBalanceOption,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Compare the cleared balance with a statement"""
    env = get_envelope(db)
    with handle_errors():
        summary = env.reconcile_summary(_session(env, account, statement_date, balance))

    session = summary.session
    typer.echo(f"\nReconciling to statement of {session.statement_date}")
    typer.echo(f"  Statement balance: {env.format(session.statement_balance)}")
    typer.echo(f"  Last reconciled balance: {env.format(session.starting_cleared_balance)}")
    typer.echo(f"  Cleared balance: {env.format(summary.current_cleared_balance)}")
    typer.echo(f"  Difference: {env.format(summary.difference)}")
    typer.echo("  ✓ Ready to complete" if summary.can_complete else "  Not balanced yet")

    if summary.cleared_transactions:
        typer.echo(f"\n  Cleared ({len(summary.cleared_transactions)}):")
        for t in summary.cleared_transactions:
            typer.echo(f"    {t.id} {t.date} {t.payee_name} {env.format(t.amount)}")
    if summary.uncleared_transactions:
        typer.echo(f"\n  Uncleared ({len(summary.uncleared_transactions)}):")
        for t in summary.uncleared_transactions:
            typer.echo(f"    {t.id} {t.date} {t.payee_name} {env.format(t.amount)}")


@reconcile_app.command("clear")
def reconcile_clear(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Mark a transaction as seen on the statement"""
    env = get_envelope(db)
    with handle_errors():
        transaction = env.reconcile_clear(env.find_transaction(transaction_id).id)
    typer.echo(f"✓ Cleared: {transaction.date} {transaction.payee_name} {env.format(transaction.amount)}")


@reconcile_app.command("unclear")
def reconcile_unclear(
    transaction_id: Annotated[str, typer.Option("--id", help="Transaction ID or prefix")],
    db: DbOption = DEFAULT_DB,
) -> None:
    """Undo clearing of a transaction"""
    env = get_envelope(db)
    with handle_errors():
        transaction = env.reconcile_unclear(env.find_transaction(transaction_id).id)
    typer.echo(f"✓ Uncleared: {transaction.date} {transaction.payee_name} {env.format(transaction.amount)}")


@reconcile_app.command("complete")
def reconcile_complete(
    account: AccountOption,
    statement_date: StatementDateOption,
    balance: StatementBalanceOption,
    adjust: Annotated[
        bool,
        typer.Option("--adjust", help="Book any remaining difference as an adjustment"),
    ] = False,
    category: Annotated[
        Optional[str], typer.Option("--category", help="Category for the adjustment")
    ] = None,
    db: DbOption = DEFAULT_DB,
) -> None:
    """Lock cleared transactions once they match the statement"""
    env = get_envelope(db)
    with handle_errors():
        session = _session(env, account, statement_date, balance)
        if adjust:
            category_id = env.find_category(category).id if category else None
            result = env.reconcile_complete_with_adjustment(session, category_id)
        else:
            result = env.reconcile_complete(session)

    typer.echo(f"✓ Reconciled {result.transactions_reconciled} transactions")
    if result.adjustment_created and result.adjustment_amount is not None:
        typer.echo(
            f"  Adjustment: {env.format(result.adjustment_amount)} "
            f"({result.adjustment_transaction_id})"
        )


def main() -> None:
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
