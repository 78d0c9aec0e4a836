"""
API tests for sub-projects and their task trees, focused on who may change what.
"""
from conftest import auth_headers

API = "/api/v1"

ACME = auth_headers("owner@acme.io", "client", name="Acme Owner")
ACME_WRITER = auth_headers("owner@acme.io", "client", read_only=False)
GLOBEX = auth_headers("buyer@globex.io", "client")


def _url(seeded, path=""):
    return f"{API}/sub-projects/{seeded['sub_project'].id}{path}"


def _task(body, task_id):
    for stage in body["content"]["stages"]:
        for task in stage["items"]:
            if task["id"] == task_id:
                return task
    raise AssertionError(f"task {task_id} not in response")


def _store_raw_content(store, seeded, raw):
    # Written as-is, bypassing the store's normalization, like rows from older clients
    sub_project = store.load_sub_project(seeded["sub_project"].id)
    sub_project.content = raw
    store.session.add(sub_project)
    store.session.commit()


class TestReadSubProject:

    def test_owner_reads_content(self, client, seeded):
        response = client.get(_url(seeded), headers=ACME)
        assert response.status_code == 200
        assert [s["name"] for s in response.json()["content"]["stages"]] == ["Design", "Build"]

    def test_other_client_is_rejected(self, client, seeded):
        assert client.get(_url(seeded), headers=GLOBEX).status_code == 403

    def test_progress(self, client, seeded):
        assert client.get(_url(seeded, "/progress"), headers=ACME).json() == {"total": 2, "completed": 0, "percent": 0}

    def test_update_metadata_is_admin_only(self, client, seeded, admin_headers):
        assert client.patch(_url(seeded), json={"name": "Landing"}, headers=ACME).status_code == 403
        response = client.patch(_url(seeded), json={"name": "Landing", "status": "queued"}, headers=admin_headers)
        assert response.json()["name"] == "Landing"
        assert response.json()["status"] == "queued"


class TestReadOnlyClient:

    def test_assigned_task_can_be_toggled(self, client, seeded):
        response = client.post(_url(seeded, "/tasks/task-wireframe/toggle"), headers=ACME)
        assert response.status_code == 200
        assert _task(response.json(), "task-wireframe")["completed"] is True

    def test_unassigned_task_cannot_be_toggled(self, client, seeded):
        response = client.post(_url(seeded, "/tasks/task-moodboard/toggle"), headers=ACME)
        assert response.status_code == 403
        body = client.get(_url(seeded), headers=ACME).json()
        assert _task(body, "task-moodboard")["completed"] is False

    def test_other_client_cannot_toggle(self, client, seeded):
        response = client.post(_url(seeded, "/tasks/task-wireframe/toggle"), headers=GLOBEX)
        assert response.status_code == 403

    def test_comment_on_assigned_task(self, client, seeded):
        response = client.post(_url(seeded, "/tasks/task-wireframe/comments"), json={"text": "Love it"}, headers=ACME)
        assert response.status_code == 200
        comment = _task(response.json(), "task-wireframe")["comments"][0]
        assert comment["text"] == "Love it"
        assert comment["userName"] == "Acme Owner"
        assert comment["userRole"] == "client"

    def test_checklist_item_on_assigned_task(self, client, seeded, admin_headers):
        body = client.post(
            _url(seeded, "/tasks/task-wireframe/checklists"), json={"title": "Review", "id": "review"}, headers=admin_headers
        ).json()
        body = client.post(
            _url(seeded, "/tasks/task-wireframe/checklists/review/items"), json={"text": "Mobile"}, headers=admin_headers
        ).json()
        item_id = _task(body, "task-wireframe")["checklists"][0]["items"][0]["id"]

        response = client.post(_url(seeded, f"/tasks/task-wireframe/checklists/review/items/{item_id}/toggle"), headers=ACME)
        assert response.status_code == 200
        assert _task(response.json(), "task-wireframe")["checklists"][0]["items"][0]["completed"] is True

    def test_cannot_change_assignment(self, client, seeded):
        acme_id = seeded["acme"].id
        response = client.post(_url(seeded, f"/tasks/task-wireframe/assignees/{acme_id}"), headers=ACME)
        assert response.status_code == 403
        response = client.patch(_url(seeded, "/tasks/task-wireframe"), json={"assignedTo": []}, headers=ACME)
        assert response.status_code == 403

    def test_cannot_attach_files(self, client, seeded):
        response = client.post(
            _url(seeded, "/tasks/task-wireframe/attachments"), json={"url": "https://files.acme.io/logo.png"}, headers=ACME
        )
        assert response.status_code == 403

    def test_cannot_rewrite_comments(self, client, seeded, admin_headers):
        client.post(_url(seeded, "/tasks/task-wireframe/comments"), json={"text": "Fees due Friday"}, headers=admin_headers)
        forged = [{"id": "c1", "text": "Admin: waive all fees", "userName": "Ada Admin", "userRole": "admin"}]
        response = client.patch(_url(seeded, "/tasks/task-wireframe"), json={"comments": forged}, headers=ACME)
        assert response.status_code == 403

        comments = _task(client.get(_url(seeded), headers=ACME).json(), "task-wireframe")["comments"]
        assert [c["text"] for c in comments] == ["Fees due Friday"]
        assert comments[0]["userRole"] == "admin"

    def test_cannot_restructure_checklists(self, client, seeded, admin_headers):
        client.post(
            _url(seeded, "/tasks/task-wireframe/checklists"), json={"title": "Review", "id": "review"}, headers=admin_headers
        )
        body = client.post(
            _url(seeded, "/tasks/task-wireframe/checklists/review/items"), json={"text": "Mobile"}, headers=admin_headers
        ).json()
        item_id = _task(body, "task-wireframe")["checklists"][0]["items"][0]["id"]

        assert client.post(
            _url(seeded, "/tasks/task-wireframe/checklists"), json={"title": "Mine"}, headers=ACME
        ).status_code == 403
        assert client.post(
            _url(seeded, "/tasks/task-wireframe/checklists/review/items"), json={"text": "Skip"}, headers=ACME
        ).status_code == 403
        assert client.delete(
            _url(seeded, f"/tasks/task-wireframe/checklists/review/items/{item_id}"), headers=ACME
        ).status_code == 403
        assert client.patch(
            _url(seeded, "/tasks/task-wireframe"), json={"checklists": []}, headers=ACME
        ).status_code == 403

        checklists = _task(client.get(_url(seeded), headers=ACME).json(), "task-wireframe")["checklists"]
        assert [item["text"] for item in checklists[0]["items"]] == ["Mobile"]

    def test_writable_client_can_manage_checklists(self, client, seeded):
        response = client.post(
            _url(seeded, "/tasks/task-wireframe/checklists"), json={"title": "Mine"}, headers=ACME_WRITER
        )
        assert response.status_code == 200

    def test_can_edit_own_task_fields(self, client, seeded):
        response = client.patch(_url(seeded, "/tasks/task-wireframe"), json={"dueDate": "2026-05-01"}, headers=ACME)
        assert response.status_code == 200
        assert _task(response.json(), "task-wireframe")["dueDate"] == "2026-05-01"

    def test_cannot_restructure(self, client, seeded):
        assert client.post(_url(seeded, "/stages"), json={"name": "QA"}, headers=ACME).status_code == 403
        response = client.post(_url(seeded, "/stages/stage-design/tasks"), json={"text": "Extra"}, headers=ACME)
        assert response.status_code == 403
        response = client.post(
            _url(seeded, "/tasks/task-wireframe/move"),
            json={"from_stage_id": "stage-design", "to_stage_id": "stage-build"},
            headers=ACME,
        )
        assert response.status_code == 403

    def test_writable_client_can_restructure(self, client, seeded):
        response = client.post(_url(seeded, "/stages"), json={"name": "QA"}, headers=ACME_WRITER)
        assert response.status_code == 200
        assert [s["name"] for s in response.json()["content"]["stages"]] == ["Design", "Build", "QA"]


class TestAdminEditing:

    def test_stage_lifecycle(self, client, seeded, admin_headers):
        body = client.post(_url(seeded, "/stages"), json={"name": "QA", "id": "stage-qa"}, headers=admin_headers).json()
        assert body["content"]["stages"][-1]["id"] == "stage-qa"

        body = client.patch(_url(seeded, "/stages/stage-qa"), json={"name": "Testing"}, headers=admin_headers).json()
        assert body["content"]["stages"][-1]["name"] == "Testing"

        body = client.delete(_url(seeded, "/stages/stage-qa"), headers=admin_headers).json()
        assert [s["id"] for s in body["content"]["stages"]] == ["stage-design", "stage-build"]

    def test_add_and_remove_task(self, client, seeded, admin_headers):
        response = client.post(
            _url(seeded, "/stages/stage-build/tasks"),
            json={"text": "Develop", "id": "task-develop", "assignedTo": [seeded["acme"].id], "dueDate": "2026-04-01"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        task = _task(response.json(), "task-develop")
        assert task["completed"] is False
        assert task["dueDate"] == "2026-04-01"

        body = client.delete(_url(seeded, "/stages/stage-build/tasks/task-develop"), headers=admin_headers).json()
        assert body["content"]["stages"][1]["items"] == []

    def test_duplicate_task_id(self, client, seeded, admin_headers):
        response = client.post(
            _url(seeded, "/stages/stage-build/tasks"), json={"text": "Copy", "id": "task-wireframe"}, headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"

    def test_missing_stage(self, client, seeded, admin_headers):
        response = client.post(_url(seeded, "/stages/nope/tasks"), json={"text": "Lost"}, headers=admin_headers)
        assert response.status_code == 404

    def test_move_task(self, client, seeded, admin_headers):
        response = client.post(
            _url(seeded, "/tasks/task-moodboard/move"),
            json={"fromStageId": "stage-design", "toStageId": "stage-build"},
            headers=admin_headers,
        )
        stages = response.json()["content"]["stages"]
        assert [t["id"] for t in stages[0]["items"]] == ["task-wireframe"]
        assert [t["id"] for t in stages[1]["items"]] == ["task-moodboard"]

    def test_toggle_assignee(self, client, seeded, admin_headers):
        globex_id = seeded["globex"].id
        response = client.post(_url(seeded, f"/tasks/task-moodboard/assignees/{globex_id}"), headers=admin_headers)
        assert _task(response.json(), "task-moodboard")["assignedTo"] == [globex_id]

    def test_attachments(self, client, seeded, admin_headers):
        response = client.post(
            _url(seeded, "/tasks/task-moodboard/attachments"),
            json={"url": "https://files.studio.io/board.pdf", "name": "Board", "type": "file"},
            headers=admin_headers,
        )
        attachment = _task(response.json(), "task-moodboard")["attachments"][0]
        assert (attachment["name"], attachment["type"]) == ("Board", "file")

        response = client.delete(_url(seeded, f"/tasks/task-moodboard/attachments/{attachment['id']}"), headers=admin_headers)
        assert _task(response.json(), "task-moodboard")["attachments"] == []

    def test_unknown_task_field(self, client, seeded, admin_headers):
        response = client.patch(_url(seeded, "/tasks/task-moodboard"), json={"id": "hijack"}, headers=admin_headers)
        assert response.status_code == 400

    def test_replace_content(self, client, seeded, admin_headers):
        content = {"stages": [{"id": "only", "name": "Only", "items": [{"id": "x", "text": "X"}]}]}
        response = client.put(_url(seeded, "/content"), json=content, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["content"]["stages"][0]["items"][0]["assignedTo"] == []

    def test_replace_content_rejects_malformed_documents(self, client, seeded, admin_headers):
        response = client.put(_url(seeded, "/content"), json={"stages": "nope"}, headers=admin_headers)
        assert response.status_code == 400
        body = client.get(_url(seeded), headers=admin_headers).json()
        assert len(body["content"]["stages"]) == 2

    def test_editing_a_legacy_document_keeps_its_tasks(self, client, seeded, store, admin_headers):
        _store_raw_content(store, seeded, {
            "stages": [
                {"id": "old", "name": None, "items": [{"text": "Legacy task"}, {"id": "t-old", "text": None}]},
            ]
        })
        response = client.post(_url(seeded, "/stages"), json={"name": "QA"}, headers=admin_headers)
        assert response.status_code == 200
        stages = response.json()["content"]["stages"]
        assert stages[0]["id"] == "old"
        assert [t["text"] for t in stages[0]["items"]] == ["Legacy task", ""]
        assert stages[1]["name"] == "QA"

    def test_unreadable_document_is_not_overwritten(self, client, seeded, store, admin_headers):
        _store_raw_content(store, seeded, {"stages": "legacy"})
        response = client.post(_url(seeded, "/stages"), json={"name": "QA"}, headers=admin_headers)
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_INPUT"
        assert store.load_sub_project(seeded["sub_project"].id).content == {"stages": "legacy"}

    def test_delete_sub_project(self, client, seeded, admin_headers):
        url = _url(seeded)
        assert client.delete(url, headers=admin_headers).json()["status"] == "success"
        assert client.get(url, headers=admin_headers).status_code == 404


class TestTaskViews:

    def test_stage_progress(self, client, seeded, admin_headers):
        client.post(_url(seeded, "/tasks/task-wireframe/toggle"), headers=admin_headers)
        body = client.get(_url(seeded, "/progress/stages"), headers=ACME).json()
        assert [(s["stage_id"], s["progress"]["completed"], s["progress"]["total"]) for s in body] == [
            ("stage-design", 1, 2),
            ("stage-build", 0, 0),
        ]

    def test_read_task(self, client, seeded, admin_headers):
        client.patch(
            _url(seeded, "/tasks/task-moodboard"),
            json={"dueDate": "2026-03-01", "checklists": [
                {"id": "c1", "title": "Refs", "items": [{"id": "i1", "text": "Colours", "completed": True},
                                                         {"id": "i2", "text": "Type", "completed": False}]},
            ]},
            headers=admin_headers,
        )
        body = client.get(_url(seeded, "/tasks/task-moodboard"), params={"today": "2026-03-02"}, headers=ACME).json()
        assert (body["stage_id"], body["stage_name"]) == ("stage-design", "Design")
        assert body["task"]["text"] == "Moodboard"
        assert body["checklist_progress"]["completed"] == 1
        assert body["checklist_progress"]["total"] == 2
        assert body["overdue"] is True

        body = client.get(_url(seeded, "/tasks/task-moodboard"), params={"today": "2026-02-01"}, headers=ACME).json()
        assert body["overdue"] is False

    def test_missing_task(self, client, seeded):
        assert client.get(_url(seeded, "/tasks/missing"), headers=ACME).status_code == 404

    def test_views_require_access(self, client, seeded):
        assert client.get(_url(seeded, "/progress/stages"), headers=GLOBEX).status_code == 403
        assert client.get(_url(seeded, "/tasks/task-wireframe"), headers=GLOBEX).status_code == 403


class TestSubProjectResources:

    def test_links(self, client, seeded, admin_headers):
        links = [{"title": "Figma", "url": "https://figma.com/acme"}, {"title": "Draft", "url": ""}]
        assert client.put(_url(seeded, "/links"), json=links, headers=admin_headers).json() == links[:1]
        assert client.get(_url(seeded, "/links"), headers=ACME).json() == links[:1]
        assert client.get(_url(seeded), headers=ACME).json()["links"] == links[:1]

    def test_credentials_round_trip_encrypted(self, client, seeded, store, admin_headers):
        credentials = [{"name": "Hosting", "username": "acme", "password": "s3cret"}]
        client.put(_url(seeded, "/credentials"), json=credentials, headers=admin_headers)
        stored = store.load_sub_project(seeded["sub_project"].id).credentials
        assert stored[0]["password"] != "s3cret"
        assert client.get(_url(seeded, "/credentials"), headers=ACME).json()[0]["password"] == "s3cret"

    def test_writes_are_admin_only(self, client, seeded):
        assert client.put(_url(seeded, "/links"), json=[], headers=ACME_WRITER).status_code == 403
        assert client.put(_url(seeded, "/credentials"), json=[], headers=ACME_WRITER).status_code == 403

    def test_legacy_row_without_links(self, client, seeded, store):
        sub_project = store.load_sub_project(seeded["sub_project"].id)
        sub_project.links = None
        store.session.add(sub_project)
        store.session.commit()
        assert client.get(_url(seeded), headers=ACME).json()["links"] == []
        assert client.get(_url(seeded, "/links"), headers=ACME).json() == []
