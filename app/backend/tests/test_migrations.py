from __future__ import annotations

import importlib.util
from pathlib import Path
from types import ModuleType

from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy import create_engine, inspect
from sqlalchemy.pool import StaticPool

from caseflow.db.base import Base
import caseflow.models.entities  # noqa: F401

VERSIONS = Path(__file__).resolve().parents[1] / "alembic" / "versions"


def _load(filename: str) -> ModuleType:
    module_spec = importlib.util.spec_from_file_location(filename.removesuffix(".py"), VERSIONS / filename)
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


def test_revisions_form_a_single_chain() -> None:
    revisions = [_load(path.name) for path in sorted(VERSIONS.glob("*.py"))]

    assert revisions[0].down_revision is None
    for previous, current in zip(revisions, revisions[1:]):
        assert current.down_revision == previous.revision


def test_upgrade_builds_the_mapped_schema_on_sqlite() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool, future=True)
    revisions = [_load(path.name) for path in sorted(VERSIONS.glob("*.py"))]

    with engine.begin() as connection:
        with Operations.context(MigrationContext.configure(connection)):
            for revision in revisions:
                revision.upgrade()

    inspector = inspect(engine)
    assert set(inspector.get_table_names()) == set(Base.metadata.tables)
    for table in Base.metadata.sorted_tables:
        migrated = {column["name"] for column in inspector.get_columns(table.name)}
        assert migrated == set(table.columns.keys()), table.name

    allocation_indexes = {index["name"] for index in inspector.get_indexes("allocations")}
    assert "uq_allocations_new_request_claim" in allocation_indexes
    assert "uq_allocations_resource_date_sr_no" in allocation_indexes
    request_indexes = {index["name"] for index in inspector.get_indexes("allocation_delete_requests")}
    assert "uq_delete_requests_pending" in request_indexes
