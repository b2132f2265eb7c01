"""Integration tests for the HTTP API."""

import asyncio
import sqlite3
import time

import aiohttp
import pytest

from chunkscribe.server import create_app


@pytest.fixture
async def client(aiohttp_client, service):
    return await aiohttp_client(create_app(service))


async def _create_started(client, session_id="sess-1"):
    resp = await client.post("/api/sessions", json={"owner": "alice", "title": "Standup", "sessionId": session_id})
    assert resp.status == 201
    resp = await client.post(f"/api/sessions/{session_id}/start", json={"actor": "alice"})
    assert resp.status == 200


async def _upload(client, session_id, seq, data=b"audio", duration_ms=None):
    form = aiohttp.FormData()
    form.add_field("chunk", data, filename=f"{seq}.webm", content_type="audio/webm")
    form.add_field("sessionId", session_id)
    form.add_field("seq", str(seq))
    if duration_ms is not None:
        form.add_field("durationMs", str(duration_ms))
    return await client.post("/api/upload-chunk", data=form)


@pytest.mark.integration
class TestServerRoutes:
    """HTTP API tests against an in-process aiohttp server."""

    async def test_session_lifecycle(self, client):
        await _create_started(client)

        resp = await client.post("/api/sessions/sess-1/pause")
        assert (await resp.json()) == {"id": "sess-1", "status": "paused"}

        resp = await client.post("/api/sessions/sess-1/pause")
        assert resp.status == 409
        body = await resp.json()
        assert body["status"] == "paused"
        assert body["operation"] == "pause"

    async def test_upload_and_missing_chunks(self, client):
        await _create_started(client)
        for seq in (0, 2, 3):
            resp = await _upload(client, "sess-1", seq)
            assert resp.status == 200
            assert (await resp.json())["success"] is True

        resp = await client.get("/api/sessions/sess-1/missing-chunks")

        assert resp.status == 200
        assert await resp.json() == {
            "missing": [1],
            "maxSeq": 3,
            "totalChunks": 3,
            "expectedChunks": 4,
            "complete": False,
        }

    async def test_upload_missing_fields(self, client):
        await _create_started(client)
        form = aiohttp.FormData()
        form.add_field("sessionId", "sess-1")

        resp = await client.post("/api/upload-chunk", data=form)

        assert resp.status == 400

    async def test_upload_after_stop(self, client):
        await _create_started(client)
        await client.post("/api/sessions/sess-1/stop")

        resp = await _upload(client, "sess-1", 0)

        assert resp.status == 409
        events = await (await client.get("/api/sessions/sess-1/events")).json()
        assert [event["type"] for event in events] == ["start", "stop"]

    async def test_combined_audio_headers(self, client):
        await _create_started(client)
        await _upload(client, "sess-1", 0, b"aa")
        await _upload(client, "sess-1", 2, b"cc")

        resp = await client.get("/api/sessions/sess-1/audio")

        assert resp.status == 200
        assert resp.content_type == "audio/webm"
        assert await resp.read() == b"aacc"
        assert resp.headers["X-Total-Chunks"] == "3"
        assert resp.headers["X-Available-Chunks"] == "2"
        assert resp.headers["X-Missing-Chunks"] == "1"

    async def test_audio_without_chunks(self, client):
        await _create_started(client)

        resp = await client.get("/api/sessions/sess-1/audio")

        assert resp.status == 404

    async def test_transcription_and_export(self, client):
        await _create_started(client)
        for seq in range(3):
            await _upload(client, "sess-1", seq)
        await client.post("/api/sessions/sess-1/chunks/0/transcription", json={"text": "Hello", "confidence": 0.95})
        await client.post("/api/sessions/sess-1/chunks/1/transcription", json={"error": "quota exceeded"})
        resp = await client.post("/api/sessions/sess-1/chunks/2/transcription", json={"text": "world"})
        assert (await resp.json())["status"] == "succeeded"

        resp = await client.get("/api/sessions/sess-1/export", params={"format": "srt"})

        assert resp.status == 200
        assert resp.content_type == "application/x-subrip"
        assert 'filename="transcript-sess-1.srt"' in resp.headers["Content-Disposition"]
        assert await resp.text() == (
            "1\n00:00:00,000 --> 00:00:05,000\nHello\n\n"
            "2\n00:00:10,000 --> 00:00:15,000\nworld\n\n"
        )

    async def test_export_plain_text_options(self, client):
        await _create_started(client)
        await _upload(client, "sess-1", 0)
        await client.post("/api/sessions/sess-1/chunks/0/transcription",
                          json={"text": "Hi", "speaker": "Ann", "confidence": 0.5})

        resp = await client.get("/api/sessions/sess-1/export",
                                params={"format": "txt", "includeSpeakers": "false", "includeConfidence": "true"})

        assert resp.content_type == "text/plain"
        assert await resp.text() == "(50%) Hi"

    async def test_export_unsupported_format(self, client):
        await _create_started(client)

        resp = await client.get("/api/sessions/sess-1/export", params={"format": "docx"})

        assert resp.status == 400
        assert (await resp.json())["format"] == "docx"

    async def test_unknown_session(self, client):
        resp = await client.get("/api/sessions/ghost")
        assert resp.status == 404

        resp = await client.get("/api/sessions/ghost/missing-chunks")
        assert resp.status == 404

    async def test_session_detail_and_flag(self, client):
        await _create_started(client)
        await _upload(client, "sess-1", 0)

        resp = await client.post("/api/sessions/sess-1/chunks/0/flag", json={"note": "check"})
        assert (await resp.json())["flagged"] is True

        detail = await (await client.get("/api/sessions/sess-1", params={"limit": "10"})).json()
        assert detail["status"] == "recording"
        assert detail["chunks"]["items"][0]["reviewNote"] == "check"
        assert detail["progress"]["total"] == 1

    async def test_complete_and_costs(self, client):
        await _create_started(client)
        await _upload(client, "sess-1", 0, duration_ms=2000)
        await client.post("/api/sessions/sess-1/chunks/0/transcription", json={"text": "Hello"})
        await client.post("/api/sessions/sess-1/stop")
        await client.post("/api/sessions/sess-1/process")

        resp = await client.post("/api/sessions/sess-1/complete", json={"summary": {"keyPoints": ["a"]}})
        assert (await resp.json())["status"] == "completed"

        costs = await (await client.get("/api/admin/costs", params={"granularity": "month"})).json()
        assert len(costs) == 1
        assert costs[0]["totalCalls"] == 1
        assert costs[0]["totalAudioSeconds"] == 2.0

    async def test_complete_requires_summary_object(self, client):
        await _create_started(client)

        resp = await client.post("/api/sessions/sess-1/complete", json={"summary": "text"})

        assert resp.status == 400

    async def test_delete_session(self, client):
        await _create_started(client)

        resp = await client.delete("/api/sessions/sess-1")
        assert (await resp.json())["deleted"] is True

        resp = await client.get("/api/sessions/sess-1")
        assert resp.status == 404

    @pytest.mark.parametrize("body", [
        {"text": 123},
        {"text": "Hello", "confidence": "0.9"},
        {"text": "Hello", "startMs": "0", "endMs": "5000"},
        {"text": "Hello", "speaker": ["Ann"]},
    ])
    async def test_wrong_typed_transcription_is_rejected(self, client, body):
        await _create_started(client)
        await _upload(client, "sess-1", 0)

        resp = await client.post("/api/sessions/sess-1/chunks/0/transcription", json=body)
        assert resp.status == 400

        detail = await (await client.get("/api/sessions/sess-1")).json()
        assert detail["chunks"]["items"][0]["status"] == "pending"
        events = await (await client.get("/api/sessions/sess-1/events")).json()
        assert "transcription_success" not in [event["type"] for event in events]

    @pytest.mark.parametrize("body", [
        {"owner": "alice", "sessionId": 5},
        {"owner": 5},
        {"owner": "alice", "title": {"text": "x"}},
    ])
    async def test_create_session_rejects_wrong_types(self, client, body):
        resp = await client.post("/api/sessions", json=body)

        assert resp.status == 400
        assert await (await client.get("/api/sessions")).json() == []

    async def test_flag_requires_json_boolean(self, client):
        await _create_started(client)
        await _upload(client, "sess-1", 0)

        resp = await client.post("/api/sessions/sess-1/chunks/0/flag", json={"flagged": "false"})
        assert resp.status == 400

        resp = await client.post("/api/sessions/sess-1/chunks/0/flag", json={"flagged": False})
        assert (await resp.json())["flagged"] is False

    async def test_session_detail_reports_diarization(self, client):
        await _create_started(client)
        for seq, speaker in enumerate(["Ann", "Bob"]):
            await _upload(client, "sess-1", seq)
            await client.post(f"/api/sessions/sess-1/chunks/{seq}/transcription",
                              json={"text": "hi", "speaker": speaker})

        detail = await (await client.get("/api/sessions/sess-1")).json()

        assert detail["diarization"] == {
            "speakerChangePercent": 100.0,
            "avgSegmentDurationSec": 5.0,
            "unknownSpeakerRate": 0.0,
            "speakerCount": 2,
            "score": 35,
        }

    async def test_blocked_database_write_does_not_stall_the_server(self, client, service):
        await _create_started(client)
        blocker = sqlite3.connect(str(service.repository.db_path), isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            upload = asyncio.ensure_future(_upload(client, "sess-1", 0))
            started = time.monotonic()
            await asyncio.sleep(0.3)
            assert time.monotonic() - started < 1.0
            assert not upload.done()
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

        resp = await upload
        assert resp.status == 200
