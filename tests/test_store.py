"""
Tests for PortalStore against an in-memory SQLite database.
"""
from unittest import mock

import pytest
from sqlalchemy.exc import OperationalError

from studio_portal.core.errors import NotFound, StorageFailure
from studio_portal.models.transaction import Transaction, TransactionCreate
from studio_portal.services.rollup import TransactionFilter


class TestClients:

    def test_load_client_by_email(self, store, seeded):
        assert store.load_client("owner@acme.io").id == seeded["acme"].id
        assert store.load_client("OWNER@ACME.IO").id == seeded["acme"].id
        assert store.load_client("nobody@acme.io") is None

    def test_get_missing_client(self, store):
        with pytest.raises(NotFound):
            store.get_client("missing")

    def test_save_client(self, store, seeded):
        client = store.save_client(seeded["acme"].id, {"phone": "+44 20 7946 0000"})
        assert client.phone == "+44 20 7946 0000"

    def test_delete_client_revokes_grants(self, store, seeded):
        project = seeded["project"]
        acme = seeded["acme"]
        store.add_project_client(project.id, acme.id)
        store.save_transaction(Transaction(description="Deposit", amount=100, project_id=project.id, client_id=acme.id))

        store.delete_client(acme.id)

        assert store.load_project(project.id).owner_client_id is None
        assert store.list_project_client_links(project.id) == []
        rows = store.list_transactions(TransactionFilter(project_id=project.id))
        assert rows[0].client_id is None


class TestProjects:

    def test_first_client_becomes_legacy_owner(self, store, seeded):
        project = store.create_project({"name": "Rebrand"}, [seeded["globex"].id, seeded["acme"].id])
        assert project.owner_client_id == seeded["globex"].id
        linked = {link.client_id for link in store.list_project_client_links(project.id)}
        assert linked == {seeded["globex"].id, seeded["acme"].id}

    def test_list_projects_for_client_unions_owned_and_linked(self, store, seeded):
        globex = seeded["globex"]
        linked = store.create_project({"name": "Rebrand"}, [])
        store.add_project_client(linked.id, globex.id)
        store.create_project({"name": "Unrelated"}, [])

        assert [p.name for p in store.list_projects_for_client(globex.id)] == ["Rebrand"]
        assert [p.name for p in store.list_projects_for_client(seeded["acme"].id)] == ["Website"]

    def test_set_project_clients_replaces_links(self, store, seeded):
        project = seeded["project"]
        store.set_project_clients(project.id, [seeded["globex"].id])
        assert [l.client_id for l in store.list_project_client_links(project.id)] == [seeded["globex"].id]
        assert store.load_project(project.id).owner_client_id == seeded["globex"].id

        store.set_project_clients(project.id, [])
        assert store.list_project_client_links(project.id) == []
        assert store.load_project(project.id).owner_client_id is None

    def test_add_link_twice_is_idempotent(self, store, seeded):
        project = seeded["project"]
        store.add_project_client(project.id, seeded["globex"].id)
        store.add_project_client(project.id, seeded["globex"].id)
        linked = [link.client_id for link in store.list_project_client_links(project.id)]
        assert sorted(linked) == sorted([seeded["acme"].id, seeded["globex"].id])

    def test_link_unknown_client(self, store, seeded):
        with pytest.raises(NotFound):
            store.add_project_client(seeded["project"].id, "missing")

    def test_save_project_normalizes_budget(self, store, seeded):
        project = store.save_project(seeded["project"].id, {"budget": {"total": 10.4, "type": "weird"}})
        assert project.budget["total"] == 10
        assert project.budget["type"] == "manual"

    def test_delete_project_cascades(self, store, seeded):
        project_id = seeded["project"].id
        sub_project_id = seeded["sub_project"].id
        store.add_project_client(project_id, seeded["globex"].id)
        store.save_transaction(Transaction(description="Deposit", amount=100, project_id=project_id))
        store.save_transaction(Transaction(description="Other", amount=100, project_id="elsewhere"))

        store.delete_project(project_id)

        with pytest.raises(NotFound):
            store.load_project(project_id)
        with pytest.raises(NotFound):
            store.load_sub_project(sub_project_id)
        assert store.list_project_client_links(project_id) == []
        assert [t.project_id for t in store.list_transactions()] == ["elsewhere"]


class TestSubProjects:

    def test_new_sub_projects_are_appended(self, store, seeded):
        project = seeded["project"]
        second = store.create_sub_project(project.id, {"name": "About"})
        assert seeded["sub_project"].position == 0
        assert second.position == 1
        assert second.content == {"stages": []}

    def test_create_in_missing_project(self, store):
        with pytest.raises(NotFound):
            store.create_sub_project("missing", {"name": "About"})

    def test_save_positions(self, store, seeded):
        project = seeded["project"]
        a = seeded["sub_project"]
        b = store.create_sub_project(project.id, {"name": "About"})
        c = store.create_sub_project(project.id, {"name": "Contact"})

        store.save_positions(project.id, [c.id, a.id, b.id])

        assert [sp.id for sp in store.list_sub_projects(project.id)] == [c.id, a.id, b.id]
        assert {sp.id: sp.position for sp in store.list_sub_projects(project.id)} == {c.id: 0, a.id: 1, b.id: 2}

    def test_save_content_round_trips_camel_case(self, store, seeded):
        sub_project = store.load_sub_project(seeded["sub_project"].id)
        task = sub_project.content["stages"][0]["items"][0]
        assert task["assignedTo"] == [seeded["acme"].id]
        assert "assigned_to" not in task

    def test_delete_sub_project_keeps_ledger_rows(self, store, seeded):
        project_id = seeded["project"].id
        sub_project_id = seeded["sub_project"].id
        store.save_transaction(Transaction(
            description="Deposit", amount=100, project_id=project_id,
            sub_project_id=sub_project_id, sub_project_item_id="task-wireframe",
        ))
        store.delete_sub_project(sub_project_id)
        row = store.list_transactions()[0]
        assert row.project_id == project_id
        assert row.sub_project_id is None
        assert row.sub_project_item_id is None


class TestLedger:

    def test_filtered_listing(self, store, seeded):
        store.save_transaction(Transaction.model_validate(TransactionCreate(
            description="Deposit", amount=500, type="income", project_id="p1", date="2026-01-02",
        )))
        store.save_transaction(Transaction.model_validate(TransactionCreate(
            description="Paint", amount=100, type="expense", project_id="p1", date="2026-01-03",
        )))
        rows = store.list_transactions(TransactionFilter(project_id="p1", type="expense"))
        assert [row.description for row in rows] == ["Paint"]
        assert [row.description for row in store.list_transactions(TransactionFilter(project_id="p1"))] == ["Paint", "Deposit"]

    def test_delete_missing_transaction(self, store):
        with pytest.raises(NotFound):
            store.delete_transaction("missing")


class TestStorageFailure:

    def test_database_errors_are_wrapped(self, store, session):
        error = OperationalError("SELECT 1", {}, Exception("database is locked"))
        with mock.patch.object(session, "exec", side_effect=error):
            with pytest.raises(StorageFailure):
                store.list_projects()

    def test_failed_commit_is_rolled_back(self, store, session):
        error = OperationalError("COMMIT", {}, Exception("disk I/O error"))
        with mock.patch.object(session, "commit", side_effect=error):
            with pytest.raises(StorageFailure):
                store.create_client({"name": "Initech", "email": "it@initech.io"})
        assert store.load_client("it@initech.io") is None
