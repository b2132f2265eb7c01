import asyncio
import functools
import logging
from datetime import datetime
from json import JSONDecodeError
from typing import Any, Dict, Optional, Type, TypeVar, Union

from aiohttp import web
from pydantic import BaseModel, StrictBool, StrictFloat, StrictInt, StrictStr, ValidationError

from ..errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    UnsupportedFormatError,
    UpstreamFailure,
)
from ..export import TextExportOptions
from ..services import SessionService

logger = logging.getLogger(__name__)

LIFECYCLE_ACTIONS = "start|pause|resume|stop|process"

RequestModel = TypeVar("RequestModel", bound=BaseModel)


class CreateSessionRequest(BaseModel):
    owner: Optional[StrictStr] = None
    title: Optional[StrictStr] = None
    sessionId: Optional[StrictStr] = None


class ActionRequest(BaseModel):
    actor: Optional[StrictStr] = None


class CompleteSessionRequest(BaseModel):
    summary: Optional[Dict[str, Any]] = None
    actor: Optional[StrictStr] = None


class TranscriptionRequest(BaseModel):
    text: Optional[StrictStr] = None
    speaker: Optional[StrictStr] = None
    confidence: Optional[Union[StrictInt, StrictFloat]] = None
    startMs: Optional[StrictInt] = None
    endMs: Optional[StrictInt] = None
    model: Optional[StrictStr] = None
    error: Optional[StrictStr] = None


class FlagRequest(BaseModel):
    flagged: StrictBool = True
    note: Optional[StrictStr] = None


def _error(http_status: int, message: str, **extra: Any) -> web.Response:
    body = {"error": message}
    body.update(extra)
    return web.json_response(body, status=http_status)


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except NotFoundError as e:
        return _error(404, str(e))
    except InvalidStateError as e:
        return _error(409, str(e), status=e.status, operation=e.operation)
    except UnsupportedFormatError as e:
        return _error(400, str(e), format=e.format_tag)
    except InvalidInputError as e:
        return _error(400, str(e))
    except StorageError as e:
        logger.error(f"Storage error on {request.method} {request.path}: {e}")
        return _error(500, "Storage failure")


async def _read_json(request: web.Request) -> Dict[str, Any]:
    if not request.body_exists:
        return {}
    try:
        body = await request.json()
    except JSONDecodeError as e:
        raise InvalidInputError(f"Malformed JSON body: {e}")
    if not isinstance(body, dict):
        raise InvalidInputError("JSON body must be an object")
    return body


async def _parse(request: web.Request, model: Type[RequestModel]) -> RequestModel:
    body = await _read_json(request)
    try:
        return model.model_validate(body)
    except ValidationError as e:
        fields = ", ".join(".".join(str(part) for part in error["loc"]) for error in e.errors())
        raise InvalidInputError(f"Invalid field(s) in request body: {fields}") from e


async def _run(func, *args, **kwargs):
    """Run a blocking service call on the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))


def _int_param(request: web.Request, name: str, default: Optional[int] = None) -> Optional[int]:
    value = request.query.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise InvalidInputError(f"Query parameter '{name}' must be an integer")


def _bool_param(request: web.Request, name: str, default: bool) -> bool:
    value = request.query.get(name)
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes", "on")


def _datetime_param(request: web.Request, name: str) -> Optional[datetime]:
    value = request.query.get(name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise InvalidInputError(f"Query parameter '{name}' must be an ISO timestamp")


def create_routes(service: SessionService) -> web.RouteTableDef:
    routes = web.RouteTableDef()

    # -- Sessions --

    @routes.post("/api/sessions")
    async def create_session(request: web.Request):
        body = await _parse(request, CreateSessionRequest)
        session = await _run(service.create_session, owner=body.owner, title=body.title,
                             session_id=body.sessionId)
        return web.json_response(session.to_dict(), status=201)

    @routes.get("/api/sessions")
    async def list_sessions(request: web.Request):
        sessions = await _run(service.list_sessions, owner=request.query.get("owner"))
        return web.json_response([session.to_dict() for session in sessions])

    @routes.get("/api/sessions/{session_id}")
    async def get_session(request: web.Request):
        detail = await _run(
            service.get_session_detail,
            request.match_info["session_id"],
            page=_int_param(request, "page", 1),
            limit=_int_param(request, "limit"),
        )
        return web.json_response(detail)

    @routes.delete("/api/sessions/{session_id}")
    async def delete_session(request: web.Request):
        counts = await _run(service.delete_session, request.match_info["session_id"])
        return web.json_response({"deleted": True, **counts})

    @routes.post("/api/sessions/{session_id}/{action:%s}" % LIFECYCLE_ACTIONS)
    async def apply_action(request: web.Request):
        body = await _parse(request, ActionRequest)
        handlers = {
            "start": service.start_session,
            "pause": service.pause_session,
            "resume": service.resume_session,
            "stop": service.stop_session,
            "process": service.begin_processing,
        }
        session = await _run(handlers[request.match_info["action"]], request.match_info["session_id"],
                             actor=body.actor)
        return web.json_response({"id": session.session_id, "status": session.status.value})

    @routes.post("/api/sessions/{session_id}/complete")
    async def complete_session(request: web.Request):
        body = await _parse(request, CompleteSessionRequest)
        if body.summary is None:
            raise InvalidInputError("Field 'summary' must be an object")
        session = await _run(service.complete_session, request.match_info["session_id"], body.summary,
                             actor=body.actor)
        return web.json_response({"id": session.session_id, "status": session.status.value})

    # -- Chunks --

    @routes.post("/api/upload-chunk")
    async def upload_chunk(request: web.Request):
        form = await request.post()
        chunk = form.get("chunk")
        session_id = form.get("sessionId")
        seq = form.get("seq")

        if not isinstance(chunk, web.FileField) or not session_id or seq is None:
            raise InvalidInputError("Missing required fields: chunk, sessionId, seq")

        duration = form.get("durationMs")
        duration_ms = None
        if duration:
            try:
                duration_ms = int(duration)
            except ValueError:
                raise InvalidInputError("Field 'durationMs' must be an integer")

        data = await _run(chunk.file.read)
        result = await _run(service.upload_chunk, session_id, seq, data, duration_ms=duration_ms,
                            actor=form.get("actor"))
        return web.json_response(result)

    @routes.post("/api/sessions/{session_id}/chunks/{seq}/transcription")
    async def record_transcription(request: web.Request):
        body = await _parse(request, TranscriptionRequest)
        session_id = request.match_info["session_id"]
        seq = request.match_info["seq"]

        if body.error:
            chunk = await _run(service.record_transcription_failure, session_id, seq,
                               UpstreamFailure(body.error))
        else:
            chunk = await _run(
                service.record_transcription,
                session_id,
                seq,
                text=body.text,
                speaker=body.speaker,
                confidence=body.confidence,
                start_ms=body.startMs,
                end_ms=body.endMs,
                model=body.model,
            )
        return web.json_response(chunk.to_dict())

    @routes.post("/api/sessions/{session_id}/chunks/{seq}/flag")
    async def flag_chunk(request: web.Request):
        body = await _parse(request, FlagRequest)
        chunk = await _run(
            service.flag_chunk,
            request.match_info["session_id"],
            request.match_info["seq"],
            flagged=body.flagged,
            note=body.note,
        )
        return web.json_response(chunk.to_dict())

    # -- Reports --

    @routes.get("/api/sessions/{session_id}/missing-chunks")
    async def missing_chunks(request: web.Request):
        report = await _run(service.missing_chunks, request.match_info["session_id"])
        return web.json_response(report.to_dict())

    @routes.get("/api/sessions/{session_id}/audio")
    async def combined_audio(request: web.Request):
        session_id = request.match_info["session_id"]
        audio = await _run(service.combined_audio, session_id)

        extension = service.chunk_store.payloads.extension
        headers = {
            "Content-Disposition": f'inline; filename="session_{session_id}.{extension}"',
            "X-Total-Chunks": str(audio.total_chunks),
            "X-Available-Chunks": str(audio.available_chunks),
        }
        if audio.partial:
            headers["X-Missing-Chunks"] = ",".join(str(seq) for seq in audio.skipped)
        return web.Response(body=audio.data, content_type=f"audio/{extension}", headers=headers)

    @routes.get("/api/sessions/{session_id}/export")
    async def export_transcript(request: web.Request):
        options = TextExportOptions(
            include_speakers=_bool_param(request, "includeSpeakers", True),
            include_timestamps=_bool_param(request, "includeTimestamps", False),
            include_confidence=_bool_param(request, "includeConfidence", False),
        )
        result = await _run(service.export, request.match_info["session_id"],
                            request.query.get("format", "txt"), options)
        return web.Response(
            text=result.content,
            content_type=result.mime_type,
            charset="utf-8",
            headers={"Content-Disposition": f'attachment; filename="{result.filename}"'},
        )

    @routes.get("/api/sessions/{session_id}/events")
    async def list_events(request: web.Request):
        events = await _run(
            service.events,
            request.match_info["session_id"],
            since=_datetime_param(request, "since"),
            until=_datetime_param(request, "until"),
        )
        return web.json_response([event.to_dict() for event in events])

    @routes.get("/api/admin/costs")
    async def cost_report(request: web.Request):
        buckets = await _run(
            service.cost_report,
            granularity=request.query.get("granularity", "day"),
            since=_datetime_param(request, "since"),
            until=_datetime_param(request, "until"),
        )
        return web.json_response([bucket.to_dict() for bucket in buckets])

    return routes
