"""API tests for /api/transcriptions: CRUD, export and LLM helpers."""

import pytest
import respx

from tests.helpers import bearer, register

LLM_URL = "https://llm.test/v1/chat/completions"
WAV = ("meeting.wav", b"RIFF\x00\x00\x00\x00WAVEfmt data", "audio/wav")


@pytest.fixture
def tx_id(client, user_token):
    resp = client.post("/api/audio/upload", files={"file": WAV}, headers=bearer(user_token))
    audio_id = resp.json()["data"]["audioFile"]["id"]
    return client.get(f"/api/audio/{audio_id}", headers=bearer(user_token)).json()["data"]["audioFile"][
        "transcriptionId"
    ]


def test_list_get_and_edit(client, user_token, tx_id):
    listed = client.get("/api/transcriptions", headers=bearer(user_token)).json()["data"]["transcriptions"]
    assert [t["id"] for t in listed] == [tx_id]
    assert "segments" not in listed[0]

    got = client.get(f"/api/transcriptions/{tx_id}", headers=bearer(user_token)).json()["data"]["transcription"]
    assert got["editedText"] is None
    assert got["segments"]

    edited = client.put(
        f"/api/transcriptions/{tx_id}", json={"editedText": "Hello, world!"}, headers=bearer(user_token)
    ).json()["data"]["transcription"]
    assert edited["editedText"] == "Hello, world!"
    assert edited["lastEditedAt"].endswith("Z")
    assert edited["text"] == "Hello world. This is a test."


def test_export_srt_and_vtt(client, user_token, tx_id):
    srt = client.post(
        "/api/transcriptions/export", json={"transcriptionId": tx_id, "format": "srt"}, headers=bearer(user_token)
    )
    assert srt.status_code == 200
    assert srt.headers["content-disposition"] == 'attachment; filename="meeting.srt"'
    assert srt.text.startswith("1\n00:00:00,000 --> 00:00:00,900\nHello world.\n\n2\n")

    vtt = client.post(
        "/api/transcriptions/export", json={"transcriptionId": tx_id, "format": "vtt"}, headers=bearer(user_token)
    )
    assert vtt.text.startswith("WEBVTT\n\n1\n00:00:00.000 --> 00:00:00.900\nHello world.\n\n")
    assert vtt.headers["content-type"].startswith("text/vtt")


def test_export_txt_prefers_edited_text(client, user_token, tx_id):
    client.put(f"/api/transcriptions/{tx_id}", json={"editedText": "Edited."}, headers=bearer(user_token))
    txt = client.post(
        "/api/transcriptions/export", json={"transcriptionId": tx_id, "format": "txt"}, headers=bearer(user_token)
    )
    assert txt.text == "Edited."


@pytest.mark.parametrize("fmt,status", [("pdf", 501), ("docx", 501), ("odt", 400)])
def test_export_unsupported_formats(client, user_token, tx_id, fmt, status):
    resp = client.post(
        "/api/transcriptions/export", json={"transcriptionId": tx_id, "format": fmt}, headers=bearer(user_token)
    )
    assert resp.status_code == status
    assert "error" in resp.json()


def test_other_users_cannot_touch_transcription(client, user_token, tx_id):
    client.cookies.clear()
    other = register(client, "other@b.com").json()["data"]["token"]
    assert client.get(f"/api/transcriptions/{tx_id}", headers=bearer(other)).status_code == 403
    assert client.delete(f"/api/transcriptions/{tx_id}", headers=bearer(other)).status_code == 403
    assert client.get("/api/transcriptions/missing", headers=bearer(other)).status_code == 404


def test_delete_transcription(client, user_token, tx_id):
    assert client.delete(f"/api/transcriptions/{tx_id}", headers=bearer(user_token)).status_code == 200
    assert client.get(f"/api/transcriptions/{tx_id}", headers=bearer(user_token)).status_code == 404


@respx.mock
def test_enhance_by_transcription_id(client, user_token, tx_id):
    respx.post(LLM_URL).respond(200, json={"choices": [{"message": {"content": "Hello, world. This is a test."}}]})
    resp = client.post("/api/transcriptions/enhance", json={"transcriptionId": tx_id}, headers=bearer(user_token))
    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "originalText": "Hello world. This is a test.",
        "enhancedText": "Hello, world. This is a test.",
    }


@respx.mock
def test_enhance_returns_input_when_llm_fails(client, user_token):
    respx.post(LLM_URL).respond(500)
    resp = client.post("/api/transcriptions/enhance", json={"text": "raw words"}, headers=bearer(user_token))
    assert resp.status_code == 200
    assert resp.json()["data"]["enhancedText"] == "raw words"


@respx.mock
def test_summarize_and_topics(client, user_token):
    respx.post(LLM_URL).respond(200, json={"choices": [{"message": {"content": "budget, hiring, roadmap"}}]})
    summary = client.post(
        "/api/transcriptions/summarize", json={"text": "long text", "type": "detailed"}, headers=bearer(user_token)
    ).json()["data"]
    assert summary == {"summary": "budget, hiring, roadmap", "type": "detailed"}

    topics = client.post("/api/transcriptions/topics", json={"text": "long text"}, headers=bearer(user_token))
    assert topics.json()["data"]["topics"] == ["budget", "hiring", "roadmap"]


def test_llm_helpers_need_a_text_source(client, user_token):
    resp = client.post("/api/transcriptions/summarize", json={"type": "brief"}, headers=bearer(user_token))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid input data"


def test_summarize_rejects_unknown_kind(client, user_token):
    resp = client.post(
        "/api/transcriptions/summarize", json={"text": "long text", "type": "haiku"}, headers=bearer(user_token)
    )
    assert resp.status_code == 400
