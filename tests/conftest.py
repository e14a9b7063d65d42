"""Shared fixtures: in-memory databases, sample entities and a relation factory."""

import importlib.util
import os
from collections.abc import Callable, Generator

import pytest
from sqlalchemy import text

from dynaschema import DynaSchema, EntityInfo, EntityRelation, RelationType
from dynaschema.core.connection import DatabaseConnection
from dynaschema.exceptions import ConnectionError

HAS_PSYCOPG = importlib.util.find_spec("psycopg") is not None

DEFAULT_TEST_POSTGRESQL_URL = "postgresql://localhost/dynaschema_test"


@pytest.fixture
def postgresql_url() -> str:
    """TEST_DATABASE_URL, skipping the test when no server answers there."""
    url = os.environ.get("TEST_DATABASE_URL", DEFAULT_TEST_POSTGRESQL_URL)
    if not HAS_PSYCOPG:
        pytest.skip("psycopg not installed")

    connection = DatabaseConnection(url)
    try:
        connection.test_connection()
    except ConnectionError:
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")
    finally:
        connection.close()
    return url


@pytest.fixture
def memory_db() -> Generator[DynaSchema, None, None]:
    database = DynaSchema("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def pg_db(postgresql_url: str) -> Generator[DynaSchema, None, None]:
    """PostgreSQL-backed instance; drops every dsm_, rec_ and rel_ table afterwards."""
    database = DynaSchema(postgresql_url)
    yield database
    with database.connection.engine.begin() as conn:
        tables = conn.execute(
            text(
                "SELECT tablename FROM pg_tables WHERE schemaname = current_schema() "
                "AND (tablename LIKE 'dsm\\_%' OR tablename LIKE 'rec\\_%' "
                "OR tablename LIKE 'rel\\_%')"
            )
        ).scalars()
        for table in list(tables):
            conn.execute(text(f'DROP TABLE IF EXISTS "{table}" CASCADE'))
    database.close()


@pytest.fixture
def customer(memory_db: DynaSchema) -> EntityInfo:
    """Entity with only the system id field."""
    return memory_db.create_entity("customer", label="Customer")


@pytest.fixture
def order(memory_db: DynaSchema) -> EntityInfo:
    """Entity referencing a customer through a non-required, non-unique GUID field."""
    return memory_db.create_entity(
        "order",
        fields=[
            {"name": "customer_id", "type": "guid"},
            {"name": "title", "type": "text"},
        ],
        label="Order",
    )


@pytest.fixture
def tag(memory_db: DynaSchema) -> EntityInfo:
    """Entity with only the system id field, used as a many-to-many target."""
    return memory_db.create_entity("tag", label="Tag")


def _build_relation(
    name: str,
    relation_type: RelationType,
    origin: EntityInfo,
    origin_field: str,
    target: EntityInfo,
    target_field: str,
    label: str | None = None,
) -> EntityRelation:
    """Build a relation between two entity fields looked up by name."""
    origin_info = origin.get_field_by_name(origin_field)
    target_info = target.get_field_by_name(target_field)
    assert origin_info is not None and target_info is not None
    return EntityRelation(
        name=name,
        label=label or name,
        relation_type=relation_type,
        origin_entity_id=origin.id,
        origin_field_id=origin_info.id,
        target_entity_id=target.id,
        target_field_id=target_info.id,
    )


@pytest.fixture
def make_relation() -> Callable[..., EntityRelation]:
    """Factory building relations between fields looked up by name."""
    return _build_relation
