"""
Soft Delete Tests — deleted_at stamping, trashed scopes and restore.
"""

import pytest

from tessera.faults import QueryFault
from tessera.models import Model, SOFT_DELETES_SCOPE, relation


class Folder(Model):
    class Meta:
        fillable = ["name"]
        timestamps = False

    @relation
    def documents(self):
        return self.has_many("Document")


class Document(Model):
    class Meta:
        fillable = ["title", "folder_id"]
        soft_deletes = True


class Draft(Model):
    table = "documents"

    class Meta:
        fillable = ["title"]


@pytest.fixture
def documents(schema, registry):
    def folders(table):
        table.id()
        table.string("name")

    def docs(table):
        table.id()
        table.foreign_id("folder_id").nullable()
        table.string("title")
        table.timestamps()
        table.soft_deletes()

    schema.create("folders", folders)
    schema.create("documents", docs)
    registry.register(Folder, Document, Draft)
    for title in ("a", "b", "c"):
        Document.create(title=title)
    return Document


class TestModelSoftDelete:
    """Test instance-level soft deletes."""

    def test_registers_global_scope(self, registry, documents):
        assert registry.has_global_scope(Document, SOFT_DELETES_SCOPE)
        assert not registry.has_global_scope(Draft, SOFT_DELETES_SCOPE)

    def test_delete_stamps_deleted_at(self, conn, documents):
        doc = Document.find(1)
        assert doc.delete()
        assert doc.trashed()
        assert doc.exists
        assert doc.is_clean()
        row = conn.table("documents").where("id", 1).first()
        assert row["deleted_at"] is not None
        assert row["updated_at"] == row["deleted_at"]

    def test_trashed_rows_hidden_by_default(self, documents):
        Document.find(1).delete()
        assert Document.count() == 2
        assert Document.find(1) is None
        assert [d["title"] for d in Document.all()] == ["b", "c"]

    def test_with_and_only_trashed(self, documents):
        Document.find(1).delete()
        assert Document.with_trashed().count() == 3
        assert [d.get_key() for d in Document.only_trashed().get()] == [1]
        assert Document.with_trashed().find(1).trashed()
        assert Document.query().with_trashed().without_trashed().count() == 2

    def test_restore(self, documents):
        doc = Document.find(1)
        doc.delete()
        assert doc.restore()
        assert not doc.trashed()
        assert Document.count() == 3

    def test_restore_halted_by_saving_listener(self, registry, documents):
        doc = Document.find(1)
        doc.delete()
        restored = []
        registry.listen(Document, "restored", restored.append)
        registry.listen(Document, "saving", lambda model: False)
        assert doc.restore() is False
        assert restored == []
        assert doc.trashed()
        assert Document.count() == 2

    def test_force_delete(self, conn, documents):
        doc = Document.find(1)
        assert doc.force_delete()
        assert not doc.exists
        assert conn.table("documents").count() == 2
        assert Document.with_trashed().find(1) is None

    def test_scope_in_sql(self, documents):
        assert '"documents"."deleted_at" IS NULL' in Document.query().to_sql()
        assert "deleted_at" not in Document.with_trashed().to_sql()

    def test_refresh_sees_trashed_row(self, documents):
        doc = Document.find(1)
        doc.delete()
        assert doc.refresh().trashed()

    def test_related_trashed_rows_hidden(self, documents):
        folder = Folder.create(name="inbox")
        folder.documents().save(Document.find(1))
        folder.documents().save(Document.find(2))
        Document.find(2).delete()
        assert [d.get_key() for d in folder["documents"]] == [1]
        assert folder.documents().with_trashed().count() == 2


class TestQuerySoftDelete:
    """Test query-level soft deletes."""

    def test_mass_delete_stamps(self, conn, documents):
        assert Document.where("title", "!=", "a").delete() == 2
        assert Document.count() == 1
        assert conn.table("documents").count() == 3

    def test_mass_restore(self, documents):
        Document.query().delete()
        assert Document.only_trashed().restore() == 3
        assert Document.count() == 3

    def test_mass_force_delete(self, conn, documents):
        Document.find(1).delete()
        assert Document.only_trashed().force_delete() == 1
        assert conn.table("documents").count() == 2

    def test_restore_without_soft_deletes(self, documents):
        with pytest.raises(QueryFault):
            Draft.query().restore()

    def test_plain_model_deletes_rows(self, conn, documents):
        Draft.find(1).delete()
        assert conn.table("documents").count() == 2
