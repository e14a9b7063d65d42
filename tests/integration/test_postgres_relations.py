"""PostgreSQL integration tests for relation materialization."""

import pytest
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError

from dynaschema import DynaSchema, EntityInfo, EntityRelation, RelationType


def _relation(
    name: str,
    relation_type: RelationType,
    origin: EntityInfo,
    origin_field: str,
    target: EntityInfo,
    target_field: str,
) -> EntityRelation:
    return EntityRelation(
        name=name,
        label=name,
        relation_type=relation_type,
        origin_entity_id=origin.id,
        origin_field_id=origin.get_field_by_name(origin_field).id,
        target_entity_id=target.id,
        target_field_id=target.get_field_by_name(target_field).id,
    )


def _customer_orders(customer: EntityInfo, order: EntityInfo) -> EntityRelation:
    return _relation(
        "customer_orders", RelationType.ONE_TO_MANY, customer, "id", order, "customer_id"
    )


@pytest.fixture
def shop(pg_db: DynaSchema) -> tuple[EntityInfo, EntityInfo]:
    """Customer and order entities on PostgreSQL."""
    customer = pg_db.create_entity("customer")
    order = pg_db.create_entity("order", fields=[{"name": "customer_id", "type": "guid"}])
    return customer, order


class TestForeignKeys:
    """One-to-many relations become real foreign keys."""

    def test_create_adds_foreign_key(self, pg_db: DynaSchema, shop):
        """The target column references the origin column."""
        customer, order = shop
        response = pg_db.relations.create(_customer_orders(customer, order))
        assert response.success, response.errors
        assert pg_db.schema.ddl.foreign_key_exists("customer_orders", "order")

        with pytest.raises(IntegrityError):
            with pg_db.connection.get_session() as session:
                session.execute(
                    text("INSERT INTO rec_order (id, customer_id) VALUES ('o1', 'nobody')")
                )
                session.commit()

    def test_delete_drops_foreign_key(self, pg_db: DynaSchema, shop):
        """Deleting the relation removes the constraint."""
        customer, order = shop
        created = pg_db.relations.create(_customer_orders(customer, order)).object

        assert pg_db.relations.delete(created.id).success
        assert not pg_db.schema.ddl.foreign_key_exists("customer_orders", "order")

    def test_failed_create_rolls_back_ddl(
        self, pg_db: DynaSchema, shop, monkeypatch: pytest.MonkeyPatch
    ):
        """A fault after the constraint was added undoes the constraint too."""
        customer, order = shop
        ddl = pg_db.schema.ddl
        original = ddl.create_foreign_key

        def create_then_fail(session, *args):
            original(session, *args)
            raise OperationalError("ALTER TABLE", {}, Exception("connection lost"))

        monkeypatch.setattr(ddl, "create_foreign_key", create_then_fail)
        response = pg_db.relations.create(_customer_orders(customer, order))

        assert response.success is False
        assert pg_db.relations.read_all().object == []
        assert not ddl.foreign_key_exists("customer_orders", "order")


class TestJoinTables:
    """Many-to-many relations become join tables."""

    def test_join_table_lifecycle(self, pg_db: DynaSchema, shop):
        """The join table exists exactly as long as the relation."""
        customer, _ = shop
        tag = pg_db.create_entity("tag")
        created = pg_db.relations.create(
            _relation("customer_tags", RelationType.MANY_TO_MANY, customer, "id", tag, "id")
        ).object
        assert pg_db.schema.ddl.table_exists("rel_customer_tags")

        assert pg_db.relations.delete(created.id).success
        assert not pg_db.schema.ddl.table_exists("rel_customer_tags")
