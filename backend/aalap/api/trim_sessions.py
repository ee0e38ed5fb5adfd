"""Trim session endpoints.

A trim session carves one video into ordered, non-overlapping scenes:

    POST /trim-sessions                     open a session
    POST /trim-sessions/{id}/enter          enter trim mode
    POST /trim-sessions/{id}/start-selection
    POST /trim-sessions/{id}/scrub          move the position
    POST /trim-sessions/{id}/playback       follow the player clock
    POST /trim-sessions/{id}/confirm        confirm the open selection
    POST /trim-sessions/{id}/export         encode and record all scenes
    POST /trim-sessions/{id}/exit           leave trim mode
    DELETE /trim-sessions/{id}              close the session
"""

import logging

from fastapi import APIRouter, status

from aalap.api.deps import Exporter, TrimRegistry
from aalap.schemas.media import (
    ExportedSceneOut,
    ExportResponse,
    PlaybackRequest,
    SceneOut,
    ScrubRequest,
    TrimSessionCreate,
    TrimSessionResponse,
)
from aalap.services.trim_sessions import TrimSession

router = APIRouter()
logger = logging.getLogger(__name__)


def _to_response(session: TrimSession) -> TrimSessionResponse:
    return TrimSessionResponse.model_validate(session.snapshot())


@router.post("", response_model=TrimSessionResponse, status_code=status.HTTP_201_CREATED)
async def create_trim_session(request: TrimSessionCreate, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.create(
        request.video_id,
        request.project_id,
        request.storage_key,
        duration=request.duration,
    )
    return _to_response(session)


@router.get("/{session_id}", response_model=TrimSessionResponse)
async def get_trim_session(session_id: str, registry: TrimRegistry) -> TrimSessionResponse:
    return _to_response(await registry.get(session_id))


@router.post("/{session_id}/enter", response_model=TrimSessionResponse)
async def enter_trim(session_id: str, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    session.segmenter.enter_trim()
    return _to_response(session)


@router.post("/{session_id}/start-selection", response_model=TrimSessionResponse)
async def start_selection(session_id: str, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    session.segmenter.start_selection()
    return _to_response(session)


@router.post("/{session_id}/scrub", response_model=TrimSessionResponse)
async def scrub(session_id: str, request: ScrubRequest, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    if request.percent is not None:
        session.segmenter.scrub_to_percent(request.percent)
    else:
        session.segmenter.seek(request.seconds)
    return _to_response(session)


@router.post("/{session_id}/playback", response_model=TrimSessionResponse)
async def sync_playback(session_id: str, request: PlaybackRequest, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    if request.duration is not None:
        session.playback_duration = request.duration
    session.segmenter.sync_playback(request.seconds)
    return _to_response(session)


@router.post("/{session_id}/confirm", response_model=TrimSessionResponse)
async def confirm_selection(session_id: str, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    session.segmenter.confirm_selection()
    return _to_response(session)


@router.post("/{session_id}/exit", response_model=TrimSessionResponse)
async def exit_trim(session_id: str, registry: TrimRegistry) -> TrimSessionResponse:
    session = await registry.get(session_id)
    session.segmenter.exit_trim()
    return _to_response(session)


@router.post("/{session_id}/export", response_model=ExportResponse)
async def export_scenes(session_id: str, registry: TrimRegistry, exporter: Exporter) -> ExportResponse:
    """Encode every confirmed scene to its own clip and close trim mode."""
    session = await registry.get(session_id)
    exported = await session.export(exporter)

    failed = sum(1 for e in exported if not e.ok)
    if failed:
        logger.warning(f"Trim session {session_id}: {failed} of {len(exported)} scenes failed to export")

    return ExportResponse(
        session=_to_response(session),
        exported=[
            ExportedSceneOut(
                index=e.index,
                scene=SceneOut(**e.scene.to_dict()),
                storage_key=e.storage_key,
                record_id=e.record_id,
                error=e.error,
            )
            for e in exported
        ],
        exported_count=len(exported) - failed,
        failed_count=failed,
    )


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_trim_session(session_id: str, registry: TrimRegistry) -> None:
    await registry.get(session_id)
    registry.remove(session_id)
