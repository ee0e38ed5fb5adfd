"""Thumbnail timeline endpoint."""

import logging

from fastapi import APIRouter

from aalap.api.deps import Timelines
from aalap.schemas.media import ThumbnailsRequest, ThumbnailsResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/videos/{video_id}/thumbnails", response_model=ThumbnailsResponse)
async def generate_thumbnails(
    video_id: str,
    request: ThumbnailsRequest,
    timelines: Timelines,
) -> ThumbnailsResponse:
    """Build the thumbnail timeline of a video, or return the stored one."""
    result = await timelines.get_or_create_timeline(video_id, request.storage_key)
    return ThumbnailsResponse(
        video_id=result.video_id,
        session_id=result.session_id,
        duration=result.duration,
        thumbnails=result.thumbnails,
        timestamps=result.timestamps,
        generated_count=result.generated_count,
        failed_count=result.failed_count,
        from_cache=result.from_cache,
        duration_degraded=result.duration_degraded,
        scenes_degraded=result.scenes_degraded,
    )
