"""
Tests for the schema builder: blueprints, DDL grammars and migrations.
"""

import pytest

from tessera.db.query import raw
from tessera.faults import QueryFault, SchemaFault
from tessera.schema import Blueprint, Migration, get_schema_grammar


# ── Helper ───────────────────────────────────────────────────────────────────

def widgets_blueprint(action="create"):
    bp = Blueprint("widgets", action)
    bp.id()
    bp.string("name")
    bp.decimal("price", 8, 2).nullable()
    return bp


# ============================================================================
# Blueprint
# ============================================================================


class TestBlueprint:
    """Test column and command collection."""

    def test_columns_in_declaration_order(self):
        bp = widgets_blueprint()
        assert [c.name for c in bp.columns] == ["id", "name", "price"]
        assert bp.creating()

    def test_modifiers_chain(self):
        bp = Blueprint("users")
        column = bp.integer("votes").unsigned().default(0).comment("cached")
        assert column.is_unsigned
        assert column.default_value == 0
        assert column.comment_text == "cached"

    def test_index_names(self):
        bp = Blueprint("users")
        bp.string("email").unique()
        bp.index(["last_name", "first_name"])
        assert [c.index for c in bp.commands] == ["users_email_unique", "users_last_name_first_name_index"]

    def test_constrained_guesses_table(self):
        bp = Blueprint("posts")
        fk = bp.foreign_id("user_id").constrained().cascade_on_delete()
        assert fk.on_table == "users"
        assert fk.references_columns == ["id"]
        assert fk.on_delete_action == "CASCADE"

    def test_timestamps_and_soft_deletes(self):
        bp = Blueprint("posts")
        bp.timestamps()
        bp.soft_deletes()
        assert [(c.name, c.is_nullable) for c in bp.columns] == [
            ("created_at", True),
            ("updated_at", True),
            ("deleted_at", True),
        ]

    def test_morphs(self):
        bp = Blueprint("comments")
        bp.morphs("commentable")
        assert [c.name for c in bp.columns] == ["commentable_type", "commentable_id"]
        assert bp.commands[0].columns == ["commentable_type", "commentable_id"]

    def test_drop_index_by_columns(self):
        bp = Blueprint("users")
        command = bp.drop_index(["email"])
        assert command.index == "users_email_index"


# ============================================================================
# DDL grammars
# ============================================================================


class TestSQLiteDDL:
    """Test SQLite DDL rendering."""

    def test_create(self):
        sql = get_schema_grammar("sqlite").compile_create(widgets_blueprint())
        assert sql == [
            'CREATE TABLE "widgets" (\n'
            '  "id" INTEGER PRIMARY KEY AUTOINCREMENT,\n'
            '  "name" VARCHAR(255) NOT NULL,\n'
            '  "price" NUMERIC(8, 2) NULL\n'
            ")"
        ]

    def test_defaults_and_enum(self):
        bp = Blueprint("tickets", "create")
        bp.boolean("open").default(True)
        bp.string("title").default("it's")
        bp.enum("status", ["new", "done"])
        sql = get_schema_grammar("sqlite").compile_create(bp)[0]
        assert '"open" TINYINT(1) NOT NULL DEFAULT 1' in sql
        assert "\"title\" VARCHAR(255) NOT NULL DEFAULT 'it''s'" in sql
        assert "CHECK (\"status\" IN ('new', 'done'))" in sql

    def test_index_emitted_after_create(self):
        bp = widgets_blueprint()
        bp.index("name")
        statements = get_schema_grammar("sqlite").compile_create(bp)
        assert statements[1] == 'CREATE INDEX "widgets_name_index" ON "widgets" ("name")'

    def test_alter_adds_each_column(self):
        bp = Blueprint("widgets")
        bp.string("colour").nullable()
        bp.unique("colour")
        assert get_schema_grammar("sqlite").compile_alter(bp) == [
            'ALTER TABLE "widgets" ADD COLUMN "colour" VARCHAR(255) NULL',
            'CREATE UNIQUE INDEX "widgets_colour_unique" ON "widgets" ("colour")',
        ]

    def test_cannot_add_foreign_key_to_existing_table(self):
        bp = Blueprint("posts")
        bp.foreign("user_id").references("id").on("users")
        with pytest.raises(SchemaFault):
            get_schema_grammar("sqlite").compile_alter(bp)

    def test_unsupported_command_on_create(self):
        bp = widgets_blueprint()
        bp.drop_column("name")
        with pytest.raises(SchemaFault):
            get_schema_grammar("sqlite").compile_create(bp)


class TestMySqlDDL:
    """Test MySQL DDL rendering."""

    def test_create_with_table_options(self):
        sql = get_schema_grammar("mysql").compile_create(widgets_blueprint())
        assert sql == [
            "CREATE TABLE `widgets` (\n"
            "  `id` BIGINT UNSIGNED NOT NULL AUTO_INCREMENT PRIMARY KEY,\n"
            "  `name` VARCHAR(255) NOT NULL,\n"
            "  `price` DECIMAL(8, 2) NULL\n"
            ") ENGINE=InnoDB DEFAULT CHARSET=utf8mb4"
        ]

    def test_inline_keys_and_foreign(self):
        bp = Blueprint("posts", "create")
        bp.id()
        bp.foreign_id("user_id").constrained().cascade_on_delete()
        bp.string("slug").unique()
        sql = get_schema_grammar("mysql").compile_create(bp)[0]
        assert (
            "CONSTRAINT `posts_user_id_foreign` FOREIGN KEY (`user_id`) "
            "REFERENCES `users` (`id`) ON DELETE CASCADE"
        ) in sql
        assert "UNIQUE KEY `posts_slug_unique` (`slug`)" in sql

    def test_rename_and_drop_foreign(self):
        grammar = get_schema_grammar("mysql")
        bp = Blueprint("posts")
        bp.drop_foreign(["user_id"])
        assert grammar.compile_alter(bp) == ["ALTER TABLE `posts` DROP FOREIGN KEY `posts_user_id_foreign`"]
        assert grammar.compile_rename("a", "b") == "RENAME TABLE `a` TO `b`"


class TestPostgresDDL:
    """Test PostgreSQL DDL rendering."""

    def test_serial_and_comments(self):
        bp = Blueprint("widgets", "create")
        bp.id()
        bp.boolean("active").default(False).comment("soft flag")
        statements = get_schema_grammar("postgresql").compile_create(bp)
        assert statements[0] == (
            'CREATE TABLE "widgets" (\n'
            '  "id" BIGSERIAL PRIMARY KEY,\n'
            '  "active" BOOLEAN NOT NULL DEFAULT FALSE\n'
            ")"
        )
        assert statements[1] == "COMMENT ON COLUMN \"widgets\".\"active\" IS 'soft flag'"


class TestSqlServerDDL:
    """Test SQL Server DDL rendering."""

    def test_identity(self):
        sql = get_schema_grammar("sqlserver").compile_create(widgets_blueprint())[0]
        assert "[id] BIGINT IDENTITY(1,1) NOT NULL PRIMARY KEY" in sql
        assert "[name] NVARCHAR(255) NOT NULL" in sql

    def test_drop_if_exists(self):
        sql = get_schema_grammar("sqlserver").compile_drop_if_exists("widgets")
        assert sql == "IF OBJECT_ID('widgets', 'U') IS NOT NULL DROP TABLE [widgets]"

    def test_unknown_dialect(self):
        with pytest.raises(SchemaFault):
            get_schema_grammar("oracle")


# ============================================================================
# Schema builder against SQLite
# ============================================================================


class TestSchemaBuilder:
    """Test executing blueprints on a live connection."""

    def test_create_and_catalog(self, schema, widgets):
        assert schema.has_table("widgets")
        assert schema.has_column("widgets", "price")
        assert schema.has_column("widgets", "PRICE")
        assert schema.has_columns("widgets", ["id", "name"])
        assert not schema.has_column("widgets", "colour")
        assert schema.get_column_listing("widgets") == ["id", "name", "price"]

    def test_to_sql_does_not_execute(self, schema):
        statements = schema.to_sql(widgets_blueprint())
        assert statements[0].startswith('CREATE TABLE "widgets"')
        assert not schema.has_table("widgets")

    def test_alter_table(self, schema, widgets):
        schema.table("widgets", lambda table: table.string("colour").nullable())
        assert schema.has_column("widgets", "colour")

    def test_rename_column(self, schema, widgets):
        schema.table("widgets", lambda table: table.rename_column("name", "title"))
        assert schema.get_column_listing("widgets") == ["id", "title", "price"]

    def test_rename_and_drop(self, schema, widgets):
        schema.rename("widgets", "gadgets")
        assert schema.has_table("gadgets")
        assert not schema.has_table("widgets")
        schema.drop("gadgets")
        assert not schema.has_table("gadgets")

    def test_drop_if_exists_missing_table(self, schema):
        schema.drop_if_exists("nothing_here")

    def test_drop_missing_table_fails(self, schema):
        with pytest.raises(QueryFault):
            schema.drop("nothing_here")

    def test_default_applies(self, conn, schema):
        def counters(table):
            table.increments("id")
            table.integer("hits").default(0)
            table.timestamp("seen_at").nullable().default(raw("CURRENT_TIMESTAMP"))

        schema.create("counters", counters)
        conn.table("counters").insert({"hits": 3})
        conn.table("counters").insert([{}])
        rows = conn.table("counters").order_by("id").get()
        assert [r["hits"] for r in rows] == [3, 0]
        assert rows[0]["seen_at"] is not None


# ============================================================================
# Migrations
# ============================================================================


class CreateWidgetsTable(Migration):
    def up(self):
        def widgets(table):
            table.id()
            table.string("name")
            table.timestamps()

        self.schema.create("widgets", widgets)

    def down(self):
        self.schema.drop_if_exists("widgets")


class AddColourToWidgets(Migration):
    within_transaction = True

    def up(self):
        self.schema.table("widgets", lambda table: table.string("colour").nullable())
        raise RuntimeError("half-applied")

    def down(self):
        pass


class TestMigration:
    """Test the up/down migration contract."""

    def test_name(self, conn):
        assert CreateWidgetsTable(conn).name == "create_widgets_table"

    def test_apply_and_revert(self, conn):
        migration = CreateWidgetsTable(conn)
        migration.apply()
        assert conn.schema().has_columns("widgets", ["id", "name", "created_at", "updated_at"])
        migration.revert()
        assert not conn.schema().has_table("widgets")

    def test_transactional_migration_rolls_back(self, conn):
        CreateWidgetsTable(conn).apply()
        with pytest.raises(RuntimeError):
            AddColourToWidgets(conn).apply()
        assert not conn.schema().has_column("widgets", "colour")
        assert conn.transaction_level == 0

    def test_base_class_is_abstract(self, conn):
        with pytest.raises(TypeError):
            Migration(conn)

    def test_missing_down_fails_at_construction(self, conn):
        class OnlyUp(Migration):
            def up(self):
                pass

        with pytest.raises(TypeError):
            OnlyUp(conn)
