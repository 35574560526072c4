"""
Tests for per-dialect query grammars.

Compiled without a server: builders are bound to a grammar only.
"""

import pytest

from tessera.db.grammar import (
    MySqlGrammar,
    PostgresGrammar,
    SQLiteGrammar,
    SqlServerGrammar,
    get_grammar,
)
from tessera.db.backends.base import qmark_to_format
from tessera.db.query import QueryBuilder
from tessera.faults import QueryFault


def builder(grammar, table="users"):
    return QueryBuilder(grammar=grammar, table=table)


class TestGrammarLookup:
    """Test resolving grammars by dialect name."""

    @pytest.mark.parametrize("dialect,cls", [
        ("mysql", MySqlGrammar),
        ("postgresql", PostgresGrammar),
        ("sqlite", SQLiteGrammar),
        ("sqlserver", SqlServerGrammar),
    ])
    def test_known(self, dialect, cls):
        assert isinstance(get_grammar(dialect), cls)

    def test_unknown(self):
        with pytest.raises(QueryFault):
            get_grammar("oracle")


class TestIdentifierQuoting:
    """Test identifier quoting per dialect."""

    def test_mysql_backticks(self):
        sql = builder(MySqlGrammar()).select("users.id").where("name", "x").to_sql()
        assert sql == "SELECT `users`.`id` FROM `users` WHERE `name` = ?"

    def test_sqlserver_brackets(self):
        sql = builder(SqlServerGrammar()).select("id").to_sql()
        assert sql == "SELECT [id] FROM [users]"

    def test_quote_escaping(self):
        assert MySqlGrammar().wrap("odd`name") == "`odd``name`"
        assert PostgresGrammar().wrap('odd"name') == '"odd""name"'

    def test_table_prefix(self):
        grammar = PostgresGrammar(table_prefix="app_")
        sql = builder(grammar).join("posts", "users.id", "posts.user_id").to_sql()
        assert sql == 'SELECT * FROM "app_users" INNER JOIN "app_posts" ON "app_users"."id" = "app_posts"."user_id"'

    def test_table_alias(self):
        sql = builder(PostgresGrammar(), "users as u").select("u.id").to_sql()
        assert sql == 'SELECT "u"."id" FROM "users" AS "u"'


class TestLimitOffset:
    """Test paging clauses per dialect."""

    def test_mysql_offset_without_limit(self):
        sql = builder(MySqlGrammar()).offset(10).to_sql()
        assert sql == "SELECT * FROM `users` LIMIT 18446744073709551615 OFFSET 10"

    def test_postgres(self):
        assert builder(PostgresGrammar()).for_page(2, 5).to_sql() == 'SELECT * FROM "users" LIMIT 5 OFFSET 5'

    def test_sqlserver_top(self):
        sql = builder(SqlServerGrammar()).order_by("id").limit(3).to_sql()
        assert sql == "SELECT TOP 3 * FROM [users] ORDER BY [id] ASC"

    def test_sqlserver_offset_fetch(self):
        sql = builder(SqlServerGrammar()).order_by("id").for_page(3, 10).to_sql()
        assert sql == "SELECT * FROM [users] ORDER BY [id] ASC OFFSET 20 ROWS FETCH NEXT 10 ROWS ONLY"

    def test_sqlserver_offset_needs_order(self):
        sql = builder(SqlServerGrammar()).offset(5).to_sql()
        assert sql == "SELECT * FROM [users] ORDER BY (SELECT 0) OFFSET 5 ROWS"


class TestWrites:
    """Test INSERT / UPDATE / DELETE rendering."""

    def test_insert_many(self):
        q = builder(PostgresGrammar())
        sql = q.grammar.compile_insert(q, [{"name": "a", "age": 1}, {"name": "b", "age": 2}])
        assert sql == 'INSERT INTO "users" ("name", "age") VALUES (?, ?), (?, ?)'

    def test_insert_get_id_postgres_returning(self):
        q = builder(PostgresGrammar())
        sql = q.grammar.compile_insert_get_id(q, {"name": "a"}, "id")
        assert sql == 'INSERT INTO "users" ("name") VALUES (?) RETURNING "id"'

    def test_insert_get_id_sqlserver_output(self):
        q = builder(SqlServerGrammar())
        sql = q.grammar.compile_insert_get_id(q, {"name": "a"}, "id")
        assert sql == "INSERT INTO [users] ([name]) OUTPUT INSERTED.[id] VALUES (?)"

    def test_insert_empty_row(self):
        q = builder(MySqlGrammar())
        assert q.grammar.compile_insert(q, [{}]) == "INSERT INTO `users` () VALUES ()"
        q = builder(SQLiteGrammar())
        assert q.grammar.compile_insert(q, [{}]) == 'INSERT INTO "users" DEFAULT VALUES'

    def test_update(self):
        q = builder(MySqlGrammar()).where("id", 1)
        sql = q.grammar.compile_update(q, {"name": "x", "age": 3})
        assert sql == "UPDATE `users` SET `name` = ?, `age` = ? WHERE `id` = ?"

    def test_delete(self):
        q = builder(SqlServerGrammar()).where("id", 1)
        assert q.grammar.compile_delete(q) == "DELETE FROM [users] WHERE [id] = ?"

    def test_truncate(self):
        q = builder(PostgresGrammar())
        assert q.grammar.compile_truncate(q) == [('TRUNCATE TABLE "users" RESTART IDENTITY', [])]


class TestOperators:
    """Test dialect specific operators."""

    def test_postgres_ilike(self):
        sql = builder(PostgresGrammar()).where("name", "ilike", "a%").to_sql()
        assert sql == 'SELECT * FROM "users" WHERE "name" ILIKE ?'

    def test_mysql_rejects_ilike(self):
        with pytest.raises(QueryFault):
            builder(MySqlGrammar()).where("name", "ilike", "a%")

    def test_postgres_jsonb_key_operators(self):
        q = builder(PostgresGrammar(), "docs").where("tags", "?|", "{a,b}").where("tags", "?&", "{c}")
        assert q.to_sql() == 'SELECT * FROM "docs" WHERE "tags" ??| ? AND "tags" ??& ?'
        adapted = qmark_to_format(q.to_sql())
        assert adapted == 'SELECT * FROM "docs" WHERE "tags" ?| %s AND "tags" ?& %s'
        assert adapted.count("%s") == len(q.get_bindings())

    def test_postgres_jsonb_operator_between_columns(self):
        q = builder(PostgresGrammar(), "docs").where_column("tags", "?|", "wanted")
        assert q.to_sql() == 'SELECT * FROM "docs" WHERE "tags" ??| "wanted"'
        assert qmark_to_format(q.to_sql(), interpolate=False) == 'SELECT * FROM "docs" WHERE "tags" ?| "wanted"'
