"""Bulk load student rows from a comma-separated text file.

Format: a header line, then one record per line as ``id,name,age,phone``.
Fields are split on commas with no quoting support, so a name containing a
comma is not representable.
"""

import logging
from dataclasses import dataclass

from .database.statements import Param, SqlType, StatementSpec

logger = logging.getLogger(__name__)

INSERT_STUDENT_SQL = "INSERT INTO students (student_id, name, age, phone) VALUES (%s, %s, %s, %s)"

FIELD_COUNT = 4


@dataclass
class StudentRecord:
    student_id: int
    name: str
    age: int
    phone: int

    def to_spec(self) -> StatementSpec:
        return StatementSpec.of(
            INSERT_STUDENT_SQL,
            Param(SqlType.INTEGER, self.student_id),
            Param(SqlType.VARCHAR, self.name),
            Param(SqlType.INTEGER, self.age),
            Param(SqlType.BIGINT, self.phone),
        )


def read_lines(path) -> list[str]:
    """Read the whole file in one pass, without line terminators."""
    with open(path, encoding="utf-8") as f:
        return f.read().splitlines()


def parse_line(line: str, line_number: int) -> StudentRecord:
    fields = line.split(",")
    if len(fields) != FIELD_COUNT:
        raise ValueError(
            f"Line {line_number}: expected {FIELD_COUNT} fields, found {len(fields)}"
        )
    try:
        return StudentRecord(
            student_id=int(fields[0]),
            name=fields[1],
            age=int(fields[2]),
            phone=int(fields[3]),
        )
    except ValueError as e:
        raise ValueError(f"Line {line_number}: {e}") from e


def parse_students(lines) -> list[StudentRecord]:
    """Parse data lines, skipping the header and blank lines."""
    records = []
    for line_number, line in enumerate(lines, start=1):
        if line_number == 1 or not line.strip():
            continue
        records.append(parse_line(line, line_number))
    return records


def insert_students(runner, records) -> int:
    """Insert records in order. Returns the number of rows inserted."""
    inserted = 0
    for record in records:
        inserted += runner.execute_change(record.to_spec())
    return inserted


def load_students_csv(runner, path) -> int:
    records = parse_students(read_lines(path))
    inserted = insert_students(runner, records)
    logger.info("Loaded %d row(s) from %s", inserted, path)
    return inserted
