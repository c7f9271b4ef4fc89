"""Tests for recordkit/bulk_load.py."""

from unittest.mock import MagicMock

import pytest

from recordkit.bulk_load import (
    INSERT_STUDENT_SQL,
    StudentRecord,
    load_students_csv,
    parse_line,
    parse_students,
    read_lines,
)
from recordkit.database.statements import SqlType


@pytest.fixture
def students_csv(tmp_path):
    path = tmp_path / "Students_Data.csv"
    path.write_text("id,name,age,phone\n11,Farah,21,9812345670\n12,Gopal,24,9823456781\n")
    return path


@pytest.fixture
def mock_runner():
    runner = MagicMock()
    runner.execute_change.return_value = 1
    return runner


class TestParse:
    def test_converts_types(self):
        record = parse_line("11,Farah,21,9812345670", 2)
        assert record == StudentRecord(student_id=11, name="Farah", age=21, phone=9812345670)

    def test_skips_header_and_blank_lines(self):
        lines = ["id,name,age,phone", "11,Farah,21,9812345670", "", "12,Gopal,24,9823456781"]
        assert [r.student_id for r in parse_students(lines)] == [11, 12]

    def test_wrong_field_count(self):
        with pytest.raises(ValueError, match="Line 3: expected 4 fields, found 5"):
            parse_students(["id,name,age,phone", "1,A,2,3", "2,Smith, John,30,123"])

    def test_non_integer_field(self):
        with pytest.raises(ValueError, match="Line 2"):
            parse_students(["id,name,age,phone", "1,A,twenty,3"])

    def test_header_only(self):
        assert parse_students(["id,name,age,phone"]) == []


class TestToSpec:
    def test_typed_slots(self):
        spec = StudentRecord(11, "Farah", 21, 9812345670).to_spec()
        assert spec.sql == INSERT_STUDENT_SQL
        assert spec.slots == [
            (1, SqlType.INTEGER, 11),
            (2, SqlType.VARCHAR, "Farah"),
            (3, SqlType.INTEGER, 21),
            (4, SqlType.BIGINT, 9812345670),
        ]
        assert spec.bind() == (11, "Farah", 21, 9812345670)


class TestLoadStudentsCsv:
    def test_reads_file_once(self, students_csv):
        assert read_lines(students_csv) == [
            "id,name,age,phone",
            "11,Farah,21,9812345670",
            "12,Gopal,24,9823456781",
        ]

    def test_inserts_data_rows_in_file_order(self, students_csv, mock_runner):
        inserted = load_students_csv(mock_runner, students_csv)

        assert inserted == 2
        specs = [c.args[0] for c in mock_runner.execute_change.call_args_list]
        assert [s.bind() for s in specs] == [
            (11, "Farah", 21, 9812345670),
            (12, "Gopal", 24, 9823456781),
        ]

    def test_returns_sum_of_row_counts(self, students_csv, mock_runner):
        mock_runner.execute_change.side_effect = [1, 0]
        assert load_students_csv(mock_runner, students_csv) == 1

    def test_bad_line_inserts_nothing(self, tmp_path, mock_runner):
        path = tmp_path / "bad.csv"
        path.write_text("id,name,age,phone\n11,Farah,21,9812345670\nbroken\n")
        with pytest.raises(ValueError, match="Line 3"):
            load_students_csv(mock_runner, path)
        mock_runner.execute_change.assert_not_called()

    def test_missing_file(self, tmp_path, mock_runner):
        with pytest.raises(FileNotFoundError):
            load_students_csv(mock_runner, tmp_path / "missing.csv")
