"""Tests for the result normalizer."""

import pytest

from app.docparse.exceptions import SchemaMismatchError
from app.docparse.models import (
    CsvColumn,
    CsvOutput,
    CsvSchemaDefinition,
    JsonOutput,
    JsonSchemaDefinition,
    JsonType,
    SchemaField,
)
from app.docparse.services.ai.normalizer import normalize_csv, normalize_json, normalize_result


class TestNormalizeJson:
    """Tests for JSON output shaping."""

    def test_array_wraps_single_object(self):
        """Test a bare object becomes a one-element array."""
        output = normalize_json({"a": "x"}, JsonType.ARRAY)
        assert output.data == [{"a": "x"}]

    def test_array_passes_lists_through(self):
        """Test lists are kept as-is, including empty ones."""
        assert normalize_json([{"a": "x"}], JsonType.ARRAY).data == [{"a": "x"}]
        assert normalize_json([], JsonType.ARRAY).data == []

    def test_object_kept(self):
        """Test an object result stays an object."""
        output = normalize_json({"a": "x"}, JsonType.OBJECT)
        assert isinstance(output, JsonOutput)
        assert output.format == "json"
        assert output.data == {"a": "x"}

    def test_object_rejects_list(self):
        """Test an object contract cannot produce a list."""
        with pytest.raises(SchemaMismatchError):
            normalize_json([{"a": "x"}], JsonType.OBJECT)


class TestNormalizeCsv:
    """Tests for CSV output shaping."""

    def test_rows_derived(self):
        """Test CSV output carries records and header + value rows."""
        output = normalize_csv([{"n": "A", "q": 1}, {"n": "B"}])
        assert isinstance(output, CsvOutput)
        assert output.data == [{"n": "A", "q": 1}, {"n": "B"}]
        assert output.rows == [["n", "q"], ["A", "1"], ["B", ""]]

    def test_empty(self):
        """Test no records means no rows."""
        output = normalize_csv([])
        assert output.data == []
        assert output.rows == []

    def test_rejects_non_list(self):
        """Test CSV output must be a list of records."""
        with pytest.raises(SchemaMismatchError):
            normalize_csv({"n": "A"})


class TestNormalizeResult:
    """Tests for schema-driven dispatch."""

    def test_dispatches_on_schema_format(self):
        """Test the schema decides the output variant."""
        csv_schema = CsvSchemaDefinition(columns=[CsvColumn(name="n")])
        json_schema = JsonSchemaDefinition(json_type=JsonType.ARRAY, fields=[SchemaField(name="n")])

        assert isinstance(normalize_result([{"n": "A"}], csv_schema), CsvOutput)
        assert normalize_result({"n": "A"}, json_schema).data == [{"n": "A"}]

    def test_date_amount_scenario(self):
        """Test dates are kept verbatim and null amounts become blank cells."""
        schema = CsvSchemaDefinition(
            columns=[
                CsvColumn(name="date", type="date"),
                CsvColumn(name="amount", type="number"),
            ]
        )
        output = normalize_result(
            [
                {"date": "2024-01-01T00:00:00Z", "amount": 10},
                {"date": "2024-01-02T00:00:00Z", "amount": None},
            ],
            schema,
        )
        assert output.rows == [
            ["date", "amount"],
            ["2024-01-01T00:00:00Z", "10"],
            ["2024-01-02T00:00:00Z", ""],
        ]

    def test_rows_have_uniform_width(self):
        """Test every row has one cell per header."""
        output = normalize_csv([{"a": 1, "b": 2, "c": 3}, {"c": 1}, {"a": 1, "z": 9}])
        assert output.rows[0] == ["a", "b", "c"]
        assert {len(row) for row in output.rows} == {3}
