"""Scene preview track endpoint."""

import logging

from fastapi import APIRouter

from aalap.api.deps import Previews
from aalap.schemas.media import PreviewRequest, PreviewResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/scenes/{scene_id}/preview", response_model=PreviewResponse)
async def generate_preview(
    scene_id: str,
    request: PreviewRequest,
    previews: Previews,
) -> PreviewResponse:
    """Mix the selected music and sound effects into one preview track."""
    track = await previews.generate_preview(
        scene_id,
        music_track_id=request.music_track_id,
        sound_effect_ids=request.sound_effect_ids,
    )
    return PreviewResponse(
        preview_id=track.id,
        scene_id=track.scene_id,
        storage_key=track.storage_key,
        preview_url=track.url,
        duration=track.duration_s,
        music_track_id=track.music_track_id,
        sound_effect_ids=track.sound_effect_ids,
    )
