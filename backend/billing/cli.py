# Overview: Flask CLI command groups for bootstrap, inspection, and maintenance.

# backend/billing/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to billing (PowerShell: $env:FLASK_APP="billing").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent; use "flask db upgrade" for migrations).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Accounts:
# - python -m flask accounts list
#   List all accounts with their state and series counters.
# - python -m flask accounts create --name "Acme Traders" --state "Maharashtra" [--gstin 27ABCDE1234F1Z5]
#   Create an account with its business profile and numbering series.
#
# Ledger maintenance:
# - python -m flask ledger reconcile --account-id 1 [--fix]
#   Compare cached customer balances with the ledger; --fix rewrites the cache.
#
# Professionals:
# - python -m flask professionals allocate --designation "Chartered Accountant"
#   Allocate (and consume) the next professional id without registering anyone.

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Account, DocumentSequence
from .models.accounts import TURNOVER_BELOW_5CR, TURNOVER_BRACKETS
from .services import account_service, identifier_service, ledger_service
from .services.concurrency import ConcurrencyError
from .validation import NotFoundError, ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including issued document numbers!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask accounts create' to add an account.")


@click.group('accounts')
def accounts_group():
    """Account (tenant) management commands."""


@accounts_group.command('list')
@with_appcontext
def list_accounts():
    """List all accounts."""
    accounts = account_service.list_accounts()

    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\n" + "="*80)
    click.echo(f"{'ID':<5} {'Name':<30} {'State':<20} {'Active':<8} {'Issued (INV/CN/DN)'}")
    click.echo("="*80)

    for account in accounts:
        counts = {
            s.kind: s.issued_count
            for s in db.session.query(DocumentSequence).filter_by(account_id=account.id).all()
        }
        issued = "/".join(str(counts.get(k, 0)) for k in ("invoice", "credit_note", "debit_note"))
        state = account.profile.state if account.profile else "-"
        active_str = "Yes" if account.is_active else "No"

        click.echo(f"{account.id:<5} {account.name:<30} {state:<20} {active_str:<8} {issued}")

    click.echo("="*80 + "\n")


@accounts_group.command('create')
@click.option('--name', required=True, help='Account / business name')
@click.option('--state', required=True, help='State of the place of business')
@click.option('--gstin', default=None, help='Business GSTIN')
@click.option('--turnover', type=click.Choice(TURNOVER_BRACKETS), default=TURNOVER_BELOW_5CR, show_default=True)
@with_appcontext
def create_account_cli(name, state, gstin, turnover):
    """Create an account with its business profile and numbering series."""
    try:
        account = account_service.create_account(
            name=name, state=state, gstin=gstin, annual_turnover=turnover
        )
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        return

    click.echo(f"PASS Created account: {account.name} (ID: {account.id})")


@click.group('ledger')
def ledger_group():
    """Customer ledger maintenance commands."""


@ledger_group.command('reconcile')
@click.option('--account-id', type=int, required=True, help='Account ID')
@click.option('--fix', is_flag=True, help='Rewrite cached balances from the ledger')
@with_appcontext
def reconcile_cli(account_id, fix):
    """Compare cached customer balances against ledger sums."""
    if db.session.query(Account).filter_by(id=account_id).first() is None:
        click.echo(f"FAIL Account ID {account_id} not found")
        return

    mismatches = ledger_service.reconcile_account(account_id, fix=fix)
    if not mismatches:
        click.echo("PASS All customer balances match the ledger")
        return

    for row in mismatches:
        status = "FIXED" if row["fixed"] else "MISMATCH"
        click.echo(
            f"{status} customer {row['customer_id']}: cached {row['cached_balance_paise']} "
            f"ledger {row['ledger_balance_paise']} (diff {row['difference_paise']})"
        )
    if not fix:
        click.echo(f"WARN {len(mismatches)} mismatched balance(s); rerun with --fix to repair")


@click.group('professionals')
def professionals_group():
    """Professional identifier commands."""


@professionals_group.command('allocate')
@click.option('--designation', required=True, help='Designation name or code (e.g. CA)')
@with_appcontext
def allocate_cli(designation):
    """Allocate the next professional id."""
    try:
        allocated = identifier_service.allocate(designation)
    except (ValidationError, NotFoundError, ConcurrencyError) as e:
        click.echo(f"FAIL {e}")
        return

    if allocated.authoritative:
        click.echo(f"PASS {allocated.value}")
    else:
        click.echo(f"WARN {allocated.value} (fallback id, not authoritative)")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(accounts_group)
    app.cli.add_command(ledger_group)
    app.cli.add_command(professionals_group)
