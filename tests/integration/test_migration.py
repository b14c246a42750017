"""
Integration test for the schema migration.

Runs the migration's upgrade against an empty SQLite database and compares
the result with the schema the models declare.
"""

import importlib.util
from decimal import Decimal
from pathlib import Path

import pytest
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect
from sqlalchemy.exc import IntegrityError

from settlement.models import Base

pytestmark = pytest.mark.integration


MIGRATION = (
    Path(__file__).parents[2] / "alembic" / "versions" / "20261019_000001_settlement_core.py"
)


def load_migration():
    spec = importlib.util.spec_from_file_location("settlement_core_migration", MIGRATION)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def run_upgrade(engine):
    migration = load_migration()
    with engine.begin() as conn:
        with Operations.context(MigrationContext.configure(conn)):
            migration.upgrade()


def insert_contract(engine, status, principal, total_withdrawn, withdrawal_count):
    users = Base.metadata.tables["users"]
    contracts = Base.metadata.tables["donation_contracts"]
    with engine.begin() as conn:
        if conn.execute(users.select()).first() is None:
            conn.execute(users.insert().values(id=1, external_uid="member-1", version=1))
        conn.execute(
            contracts.insert().values(
                owner_id=1,
                principal=Decimal(principal),
                status=status,
                total_withdrawn=Decimal(total_withdrawn),
                withdrawal_count=withdrawal_count,
                version=1,
            )
        )


def describe(engine) -> dict:
    """Tables with their column and index names."""
    inspector = inspect(engine)
    return {
        table: (
            {column["name"] for column in inspector.get_columns(table)},
            {index["name"] for index in inspector.get_indexes(table)},
        )
        for table in inspector.get_table_names()
        if table != "alembic_version"
    }


@pytest.fixture
def migrated_engine():
    engine = create_engine("sqlite://")
    yield engine
    engine.dispose()


@pytest.fixture
def model_engine():
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


class TestSettlementCoreMigration:
    """Test the initial migration."""

    def test_upgrade_matches_models(self, migrated_engine, model_engine):
        run_upgrade(migrated_engine)

        assert describe(migrated_engine) == describe(model_engine)

    def test_downgrade_drops_everything(self, migrated_engine):
        migration = load_migration()

        with migrated_engine.begin() as conn:
            with Operations.context(MigrationContext.configure(conn)):
                migration.upgrade()
                migration.downgrade()

        assert inspect(migrated_engine).get_table_names() == []


class TestContractCompletionConstraints:
    """Completed iff the count ceiling or the principal is reached."""

    @pytest.fixture(params=["migration", "models"])
    def engine(self, request, migrated_engine, model_engine):
        if request.param == "migration":
            run_upgrade(migrated_engine)
            return migrated_engine
        return model_engine

    @pytest.mark.parametrize(
        "status, principal, total_withdrawn, withdrawal_count",
        [
            ("active", "1000", "1000", 4),
            ("active", "10000", "3000", 12),
            ("expired", "1000", "1000", 4),
            ("completed", "10000", "3000", 4),
        ],
    )
    def test_rejects_inconsistent_status(
        self, engine, status, principal, total_withdrawn, withdrawal_count
    ):
        with pytest.raises(IntegrityError):
            insert_contract(engine, status, principal, total_withdrawn, withdrawal_count)

    @pytest.mark.parametrize(
        "status, principal, total_withdrawn, withdrawal_count",
        [
            ("active", "10000", "9900", 11),
            ("completed", "1000", "1000", 4),
            ("completed", "100000", "36000", 12),
            ("pending", "1000", "0", 0),
        ],
    )
    def test_accepts_consistent_status(
        self, engine, status, principal, total_withdrawn, withdrawal_count
    ):
        insert_contract(engine, status, principal, total_withdrawn, withdrawal_count)
