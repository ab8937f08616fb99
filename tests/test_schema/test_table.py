"""
Tests for Table.
"""

from recordql.schema.table import Table


class TestTable:
    """Tests for Table."""

    def test_sequence_behaviour(self, users_schema):
        table = users_schema.table([{"email": "a@b.co"}, {"email": "c@d.co"}, {"email": "e@f.co"}])
        assert len(table) == 3
        assert table[1]["email"] == "c@d.co"
        assert [r["email"] for r in table] == ["a@b.co", "c@d.co", "e@f.co"]
        assert table.first()["email"] == "a@b.co"

    def test_slice_is_table(self, users_schema):
        table = users_schema.table([{"email": "a@b.co"}, {"email": "c@d.co"}])
        head = table[:1]
        assert isinstance(head, Table)
        assert len(head) == 1

    def test_validate(self, users_schema):
        table = users_schema.table(
            [{"email": "a@b.co", "name": "Ann"}, {"email": "nope", "name": "Bob"}]
        )
        assert table.is_valid()
        checked = table.validate()
        assert not checked.is_valid()
        assert [i for i, _ in checked.invalid_rows()] == [1]

    def test_data_and_columns(self, users_schema):
        table = users_schema.table([{"email": "a@b.co"}])
        assert table.data()[0]["email"] == "a@b.co"
        assert table.columns == users_schema.field_names()

    def test_empty(self, users_schema):
        table = Table(users_schema, [])
        assert table.first() is None
        assert table.columns == users_schema.field_names()
        assert table.is_valid()
