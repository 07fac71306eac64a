"""API tests for /api/projects and /api/activity, plus activity retention."""

from datetime import timedelta

from audiotext.db.crud import ActivityLogRepository, UserRepository
from audiotext.db.models import ActivityLog, utcnow
from tests.helpers import bearer, register

WAV = ("clip.wav", b"RIFF\x00\x00\x00\x00WAVEfmt data", "audio/wav")


def _project(client, token, **body):
    body.setdefault("name", "Lectures")
    return client.post("/api/projects", json=body, headers=bearer(token))


def _upload(client, token, **data):
    return client.post("/api/audio/upload", files={"file": WAV}, data=data, headers=bearer(token))


def test_project_crud(client, user_token):
    resp = _project(client, user_token, description="Term 1", tags=["physics"])
    assert resp.status_code == 200, resp.text
    project = resp.json()["data"]["project"]
    assert project["name"] == "Lectures"
    assert project["tags"] == ["physics"]
    assert project["isShared"] is False

    listed = client.get("/api/projects", headers=bearer(user_token)).json()["data"]["projects"]
    assert [p["id"] for p in listed] == [project["id"]]

    patched = client.patch(
        f"/api/projects/{project['id']}", json={"name": "Lectures 2026", "isShared": True}, headers=bearer(user_token)
    ).json()["data"]["project"]
    assert patched["name"] == "Lectures 2026"
    assert patched["isShared"] is True
    assert patched["description"] == "Term 1"

    assert client.patch(f"/api/projects/{project['id']}", json={}, headers=bearer(user_token)).status_code == 400

    assert client.delete(f"/api/projects/{project['id']}", headers=bearer(user_token)).status_code == 200
    assert client.get(f"/api/projects/{project['id']}", headers=bearer(user_token)).status_code == 404


def test_project_validation(client, user_token):
    assert _project(client, user_token, name="").status_code == 400
    assert _project(client, user_token, tags=[str(i) for i in range(21)]).status_code == 400


def test_upload_into_project_and_filter(client, user_token):
    project_id = _project(client, user_token).json()["data"]["project"]["id"]
    inside = _upload(client, user_token, projectId=project_id).json()["data"]["audioFile"]
    _upload(client, user_token)
    assert inside["projectId"] == project_id

    filtered = client.get("/api/audio", params={"projectId": project_id}, headers=bearer(user_token))
    assert [a["id"] for a in filtered.json()["data"]["audioFiles"]] == [inside["id"]]

    detail = client.get(f"/api/projects/{project_id}", headers=bearer(user_token)).json()["data"]
    assert [a["id"] for a in detail["audioFiles"]] == [inside["id"]]
    assert detail["project"]["lastAccessedAt"]


def test_deleting_project_keeps_its_audio(client, user_token):
    project_id = _project(client, user_token).json()["data"]["project"]["id"]
    audio_id = _upload(client, user_token, projectId=project_id).json()["data"]["audioFile"]["id"]

    client.delete(f"/api/projects/{project_id}", headers=bearer(user_token))
    audio = client.get(f"/api/audio/{audio_id}", headers=bearer(user_token)).json()["data"]["audioFile"]
    assert audio["projectId"] is None


def test_projects_are_private_to_their_owner(client, user_token):
    project_id = _project(client, user_token).json()["data"]["project"]["id"]
    client.cookies.clear()
    other = register(client, "other@b.com").json()["data"]["token"]
    client.cookies.clear()

    assert client.get(f"/api/projects/{project_id}", headers=bearer(other)).status_code == 403
    assert client.get("/api/projects", headers=bearer(other)).json()["data"]["projects"] == []
    # cannot upload into someone else's project either
    assert _upload(client, other, projectId=project_id).status_code == 403
    assert _upload(client, other, projectId="missing").status_code == 404


def test_activity_lists_own_entries_newest_first(client, user_token):
    _project(client, user_token, name="Podcast")
    resp = client.get("/api/activity", headers=bearer(user_token))
    assert resp.status_code == 200
    entries = resp.json()["data"]["activities"]
    assert [e["type"] for e in entries] == ["project_create", "register"]
    assert entries[0]["metadata"]["projectId"]
    assert client.get("/api/activity").status_code == 401


def test_delete_older_than_prunes_only_old_entries(app, client, user_token):
    db = app.state.ctx.session_factory()
    try:
        user = UserRepository(db).find_by_email("a@b.com")
        db.add(ActivityLog(user_id=user.id, type="login", description="old", timestamp=utcnow() - timedelta(days=120)))
        db.commit()

        removed = ActivityLogRepository(db).delete_older_than(90, user_id=user.id)
        assert removed == 1
        assert [e.type for e in ActivityLogRepository(db).find_by_user(user.id)] == ["register"]
    finally:
        db.close()
