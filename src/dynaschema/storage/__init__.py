"""Physical schema management for DynaSchema.

Entities live in ``rec_*`` tables; many-to-many relations in ``rel_*`` join
tables; other relations are ``fk_*`` foreign keys.
"""

from dynaschema.storage.ddl import (
    SchemaDDL,
    entity_table_name,
    foreign_key_name,
    join_table_name,
)

__all__ = ["SchemaDDL", "entity_table_name", "foreign_key_name", "join_table_name"]
