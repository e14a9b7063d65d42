"""Tests for relation persistence and materialization."""

from collections.abc import Callable
from uuid import uuid4

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.exc import IntegrityError, OperationalError

from dynaschema import DynaSchema
from dynaschema.core.types import EntityInfo, EntityRelation, RelationType
from dynaschema.exceptions import RelationNotFoundError
from dynaschema.relations.repository import RelationRepository
from dynaschema.schema.models import EntityRelationRecord

MakeRelation = Callable[..., EntityRelation]


@pytest.fixture
def repository(memory_db: DynaSchema) -> RelationRepository:
    """Repository bound to the in-memory database."""
    return memory_db.relation_repository


@pytest.fixture
def customer_tags(
    customer: EntityInfo, tag: EntityInfo, make_relation: MakeRelation
) -> EntityRelation:
    """An unsaved many-to-many relation customer.id <-> tag.id."""
    relation = make_relation("customer_tags", RelationType.MANY_TO_MANY, customer, "id", tag, "id")
    relation.id = uuid4()
    return relation


@pytest.fixture
def customer_orders(
    customer: EntityInfo, order: EntityInfo, make_relation: MakeRelation
) -> EntityRelation:
    """An unsaved one-to-many relation customer.id -> order.customer_id."""
    relation = make_relation(
        "customer_orders", RelationType.ONE_TO_MANY, customer, "id", order, "customer_id"
    )
    relation.id = uuid4()
    return relation


def _insert_record(db: DynaSchema, table: str) -> str:
    record_id = str(uuid4())
    with db.connection.get_session() as session:
        session.execute(text(f'INSERT INTO "{table}" (id) VALUES (:id)'), {"id": record_id})
        session.commit()
    return record_id


def _stored_ids(db: DynaSchema) -> list[str]:
    with db.connection.get_session() as session:
        return [r.id for r in session.query(EntityRelationRecord).all()]


class TestConstruction:
    """Tests for repository construction."""

    def test_requires_connection(self, memory_db: DynaSchema):
        """A missing connection is a programming error."""
        with pytest.raises(ValueError):
            RelationRepository(None, memory_db.schema)

    def test_requires_schema(self, memory_db: DynaSchema):
        """A missing schema engine is a programming error."""
        with pytest.raises(ValueError):
            RelationRepository(memory_db.connection, None)


class TestCreate:
    """Tests for RelationRepository.create."""

    def test_create_one_to_many(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_orders
    ):
        """A one-to-many relation is stored as a JSON record."""
        assert repository.create(customer_orders) is True
        assert _stored_ids(memory_db) == [str(customer_orders.id)]
        assert repository.read(customer_orders.id) == customer_orders

    def test_create_many_to_many_builds_join_table(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """A many-to-many relation gets a rel_ join table with a composite key."""
        assert repository.create(customer_tags) is True

        inspector = inspect(memory_db.connection.engine)
        assert "rel_customer_tags" in inspector.get_table_names()
        columns = [c["name"] for c in inspector.get_columns("rel_customer_tags")]
        assert columns == ["origin_id", "target_id"]
        pk = inspector.get_pk_constraint("rel_customer_tags")["constrained_columns"]
        assert sorted(pk) == ["origin_id", "target_id"]
        referred = {fk["referred_table"] for fk in inspector.get_foreign_keys("rel_customer_tags")}
        assert referred == {"rec_customer", "rec_tag"}

    def test_create_requires_id(self, repository: RelationRepository, customer_tags):
        """Ids are assigned before the repository is called."""
        customer_tags.id = None
        with pytest.raises(ValueError):
            repository.create(customer_tags)

    def test_ddl_failure_rolls_back(
        self,
        memory_db: DynaSchema,
        repository: RelationRepository,
        customer_tags,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """A failed join table creation leaves neither record nor table behind."""

        def fail(*args, **kwargs):
            raise OperationalError("CREATE TABLE", {}, Exception("disk full"))

        monkeypatch.setattr(repository._ddl, "create_join_table", fail)

        assert repository.create(customer_tags) is False
        assert _stored_ids(memory_db) == []
        assert repository.read(customer_tags.id) is None
        assert not memory_db.schema.ddl.table_exists("rel_customer_tags")

    def test_duplicate_record_rolls_back(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_orders
    ):
        """Storing the same id twice fails without raising."""
        assert repository.create(customer_orders) is True
        same_id = customer_orders.model_copy(update={"name": "other_orders"})
        assert repository.create(same_id) is False
        assert repository.read("other_orders") is None
        assert _stored_ids(memory_db) == [str(customer_orders.id)]

    def test_duplicate_name_rejected_under_lock(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_orders
    ):
        """A second relation with a taken name is refused even without validation."""
        assert repository.create(customer_orders) is True

        twin = customer_orders.model_copy(update={"id": uuid4(), "name": "CUSTOMER_ORDERS"})
        assert repository.create(twin) is False
        assert _stored_ids(memory_db) == [str(customer_orders.id)]
        assert repository.read(twin.id) is None


class TestRead:
    """Tests for RelationRepository.read."""

    def test_read_by_id_name_and_all(self, repository: RelationRepository, customer_orders):
        """Relations are read by id, case-insensitive name, or all at once."""
        repository.create(customer_orders)

        assert repository.read(customer_orders.id) == customer_orders
        assert repository.read("Customer_Orders") == customer_orders
        assert repository.read() == [customer_orders]
        assert repository.read(uuid4()) is None
        assert repository.read("missing") is None

    def test_read_empty(self, repository: RelationRepository):
        """An empty store reads as an empty list."""
        assert repository.read() == []

    def test_read_returns_copies(self, repository: RelationRepository, customer_orders):
        """Mutating a returned relation does not touch the cache."""
        repository.create(customer_orders)

        loaded = repository.read(customer_orders.id)
        loaded.name = "changed"
        assert repository.read(customer_orders.id).name == "customer_orders"

    def test_writes_refresh_cache(
        self, repository: RelationRepository, customer_orders, customer_tags
    ):
        """Every write invalidates the cache so reads see it immediately."""
        assert repository.read() == []
        assert repository.cache.is_loaded

        repository.create(customer_orders)
        assert not repository.cache.is_loaded
        assert len(repository.read()) == 1

        repository.create(customer_tags)
        assert {r.name for r in repository.read()} == {"customer_orders", "customer_tags"}


class TestUpdate:
    """Tests for RelationRepository.update."""

    def test_update_rewrites_label(self, repository: RelationRepository, customer_orders):
        """Label changes are persisted."""
        repository.create(customer_orders)

        relabeled = customer_orders.model_copy(update={"label": "Orders"})
        assert repository.update(relabeled) is True
        assert repository.read(customer_orders.id).label == "Orders"

    def test_update_keeps_physical_attributes(
        self, repository: RelationRepository, customer_orders
    ):
        """A new name would orphan the foreign key, so the record is left alone."""
        repository.create(customer_orders)

        renamed = customer_orders.model_copy(update={"name": "orders", "label": "Orders"})
        with pytest.raises(ValueError):
            repository.update(renamed)
        assert repository.read("orders") is None
        assert repository.read(customer_orders.id) == customer_orders

    def test_update_allows_case_change(self, repository: RelationRepository, customer_orders):
        """Physical names are lowercase, so a change of case is only cosmetic."""
        repository.create(customer_orders)

        recased = customer_orders.model_copy(update={"name": "Customer_Orders"})
        assert repository.update(recased) is True
        assert repository.read(customer_orders.id).name == "Customer_Orders"

    def test_update_missing(self, repository: RelationRepository, customer_orders):
        """Updating an unknown relation reports failure."""
        assert repository.update(customer_orders) is False


class TestDelete:
    """Tests for RelationRepository.delete."""

    def test_delete_many_to_many_drops_join_table(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """Deleting a many-to-many relation drops its join table."""
        repository.create(customer_tags)
        assert repository.delete(customer_tags.id) is True

        assert repository.read(customer_tags.id) is None
        assert _stored_ids(memory_db) == []
        assert not memory_db.schema.ddl.table_exists("rel_customer_tags")

    def test_delete_one_to_many(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_orders
    ):
        """Deleting a one-to-many relation removes its record."""
        repository.create(customer_orders)
        assert repository.delete(customer_orders.id) is True
        assert repository.read() == []

    def test_delete_missing_raises(self, repository: RelationRepository):
        """Deleting an unknown id is a programming error."""
        with pytest.raises(RelationNotFoundError):
            repository.delete(uuid4())

    def test_delete_failure_rolls_back(
        self,
        memory_db: DynaSchema,
        repository: RelationRepository,
        customer_tags,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """A failed drop keeps the relation and its table."""
        repository.create(customer_tags)

        def fail(*args, **kwargs):
            raise OperationalError("DROP TABLE", {}, Exception("locked"))

        monkeypatch.setattr(repository._ddl, "drop_join_table", fail)

        assert repository.delete(customer_tags.id) is False
        assert repository.read(customer_tags.id) == customer_tags
        assert memory_db.schema.ddl.table_exists("rel_customer_tags")


class TestJoinRecords:
    """Tests for many-to-many join records."""

    def test_link_and_unlink(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """Links are created, listed and removed by origin or target."""
        repository.create(customer_tags)
        customer_id = _insert_record(memory_db, "rec_customer")
        tag_a = _insert_record(memory_db, "rec_tag")
        tag_b = _insert_record(memory_db, "rec_tag")

        repository.create_join_record(customer_tags.id, customer_id, tag_a)
        repository.create_join_record(customer_tags.id, customer_id, tag_b)
        assert sorted(repository.read_join_records("customer_tags")) == sorted(
            [(customer_id, tag_a), (customer_id, tag_b)]
        )

        assert repository.delete_join_record("customer_tags", target_id=tag_a) == 1
        assert repository.read_join_records("customer_tags", origin_id=customer_id) == [
            (customer_id, tag_b)
        ]

        assert repository.delete_join_record(customer_tags.id, origin_id=customer_id) == 1
        assert repository.read_join_records("customer_tags") == []

    def test_duplicate_link_rejected(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """A pair can be linked once."""
        repository.create(customer_tags)
        customer_id = _insert_record(memory_db, "rec_customer")
        tag_id = _insert_record(memory_db, "rec_tag")

        repository.create_join_record(customer_tags.id, customer_id, tag_id)
        with pytest.raises(IntegrityError):
            repository.create_join_record(customer_tags.id, customer_id, tag_id)

    def test_link_requires_existing_records(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """Join rows reference real records on both sides."""
        repository.create(customer_tags)
        customer_id = _insert_record(memory_db, "rec_customer")

        with pytest.raises(IntegrityError):
            repository.create_join_record(customer_tags.id, customer_id, str(uuid4()))

    def test_links_cascade_with_records(
        self, memory_db: DynaSchema, repository: RelationRepository, customer_tags
    ):
        """Deleting an endpoint record removes its links."""
        repository.create(customer_tags)
        customer_id = _insert_record(memory_db, "rec_customer")
        tag_id = _insert_record(memory_db, "rec_tag")
        repository.create_join_record(customer_tags.id, customer_id, tag_id)

        with memory_db.connection.get_session() as session:
            session.execute(text("DELETE FROM rec_tag WHERE id = :id"), {"id": tag_id})
            session.commit()

        assert repository.read_join_records("customer_tags") == []

    def test_link_unknown_relation(self, repository: RelationRepository):
        """Linking through an unknown relation id is a programming error."""
        with pytest.raises(RelationNotFoundError):
            repository.create_join_record(uuid4(), uuid4(), uuid4())

    def test_unlink_unknown_relation_id(self, repository: RelationRepository):
        """Unlinking through an unknown relation id is a programming error."""
        with pytest.raises(RelationNotFoundError):
            repository.delete_join_record(uuid4(), origin_id=uuid4())

    def test_unlink_requires_filter(self, repository: RelationRepository, customer_tags):
        """At least one side must be given."""
        repository.create(customer_tags)
        with pytest.raises(ValueError):
            repository.delete_join_record("customer_tags")
