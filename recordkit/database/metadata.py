"""Column metadata from the PostgreSQL catalog.

psycopg2 only reports a name, a type OID and the source table/column for
each result column. The rest of a ColumnDescriptor (type name, width,
nullability, identity/serial flag, table name) is read from the catalog once
per result shape and cached on the connection handle.
"""

from dataclasses import dataclass
from typing import Optional

import psycopg2
from psycopg2 import sql

from ..errors import CursorError

TYPE_NAMES_SQL = "SELECT oid, format_type(oid, NULL) FROM pg_type WHERE oid = ANY(%s::oid[])"

ATTRIBUTES_SQL = """
    SELECT a.attrelid, a.attnum, n.nspname, c.relname, a.attname,
           format_type(a.atttypid, a.atttypmod), a.atttypmod, a.attnotnull,
           (a.attidentity <> ''
            OR COALESCE(pg_get_expr(d.adbin, d.adrelid), '') LIKE 'nextval(%%')
    FROM pg_attribute a
    JOIN pg_class c ON c.oid = a.attrelid
    JOIN pg_namespace n ON n.oid = c.relnamespace
    LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
    WHERE a.attrelid = ANY(%s::oid[]) AND a.attnum > 0
"""

PRIMARY_KEY_SQL = """
    SELECT a.attname
    FROM pg_index i
    JOIN pg_attribute a ON a.attrelid = i.indrelid AND a.attnum = ANY(i.indkey)
    WHERE i.indrelid = %s AND i.indisprimary
    ORDER BY a.attnum
"""

# Display widths for types whose text form has a fixed maximum length
FIXED_WIDTHS = {
    "smallint": 6,
    "integer": 11,
    "bigint": 20,
    "boolean": 1,
    "real": 15,
    "double precision": 25,
    "date": 10,
    "time without time zone": 15,
    "timestamp without time zone": 29,
    "timestamp with time zone": 35,
    "uuid": 36,
}


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    label: str
    type_name: str
    display_size: Optional[int]
    nullable: Optional[bool]
    autoincrement: bool
    table_name: Optional[str]
    schema_name: Optional[str] = None
    table_oid: Optional[int] = None


@dataclass(frozen=True)
class UpdateTarget:
    """Single table behind an updatable result, and how to address its rows."""
    schema_name: str
    table_name: str
    column_names: tuple
    key_columns: tuple
    key_indexes: tuple

    @property
    def identifier(self) -> sql.Identifier:
        return sql.Identifier(self.schema_name, self.table_name)


def display_size(type_name: str, typmod: int, internal_size) -> Optional[int]:
    base = type_name.split("(")[0]
    if base in ("character varying", "character") and typmod > 4:
        return typmod - 4
    if base == "numeric" and typmod > 4:
        precision = ((typmod - 4) >> 16) & 0xFFFF
        return precision + 2
    if base in FIXED_WIDTHS:
        return FIXED_WIDTHS[base]
    if internal_size and internal_size > 0:
        return internal_size
    return None


def _shape_key(description) -> tuple:
    return tuple(
        (col.name, col.type_code, getattr(col, "table_oid", None), getattr(col, "table_column", None))
        for col in description
    )


def describe_columns(handle, description) -> tuple:
    """Return one ColumnDescriptor per result column, in projection order."""
    key = _shape_key(description)
    cached = handle.column_cache.get(key)
    if cached is not None:
        return cached

    type_oids = sorted({col.type_code for col in description})
    table_oids = sorted({oid for _, _, oid, _ in key if oid is not None})

    try:
        with handle.cursor() as cur:
            cur.execute(TYPE_NAMES_SQL, (type_oids,))
            type_names = {oid: name for oid, name in cur.fetchall()}

            attributes = {}
            if table_oids:
                cur.execute(ATTRIBUTES_SQL, (table_oids,))
                for row in cur.fetchall():
                    attributes[(row[0], row[1])] = row[2:]
    except psycopg2.Error as e:
        raise handle.translate(e, "read column metadata") from e

    descriptors = []
    for col, (_, type_oid, table_oid, table_column) in zip(description, key):
        attr = attributes.get((table_oid, table_column))
        if attr is None:
            type_name = type_names.get(type_oid, str(type_oid))
            descriptors.append(ColumnDescriptor(
                name=col.name,
                label=col.name,
                type_name=type_name,
                display_size=display_size(type_name, -1, getattr(col, "internal_size", None)),
                nullable=None,
                autoincrement=False,
                table_name=None,
            ))
            continue

        schema_name, table_name, attname, type_name, typmod, not_null, autoinc = attr
        descriptors.append(ColumnDescriptor(
            name=attname,
            label=col.name,
            type_name=type_name,
            display_size=display_size(type_name, typmod, getattr(col, "internal_size", None)),
            nullable=not not_null,
            autoincrement=bool(autoinc),
            table_name=table_name,
            schema_name=schema_name,
            table_oid=table_oid,
        ))

    result = tuple(descriptors)
    handle.column_cache[key] = result
    return result


def resolve_update_target(handle, descriptors) -> UpdateTarget:
    """Check that a result can be updated in place and find its primary key.

    Raises CursorError unless every column comes from one table whose
    primary key columns are all part of the projection.
    """
    table_oids = {d.table_oid for d in descriptors}
    if len(table_oids) != 1 or None in table_oids:
        raise CursorError("Updatable cursors require every column to come from a single table")

    first = descriptors[0]
    try:
        with handle.cursor() as cur:
            cur.execute(PRIMARY_KEY_SQL, (first.table_oid,))
            key_columns = tuple(row[0] for row in cur.fetchall())
    except psycopg2.Error as e:
        raise handle.translate(e, "look up primary key") from e

    if not key_columns:
        raise CursorError(f"Table {first.table_name} has no primary key; result is not updatable")

    names = tuple(d.name for d in descriptors)
    missing = [k for k in key_columns if k not in names]
    if missing:
        raise CursorError(
            f"Primary key column(s) {', '.join(missing)} of {first.table_name} "
            f"must be selected for an updatable cursor"
        )

    return UpdateTarget(
        schema_name=first.schema_name,
        table_name=first.table_name,
        column_names=names,
        key_columns=key_columns,
        key_indexes=tuple(names.index(k) for k in key_columns),
    )
