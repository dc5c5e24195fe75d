from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..models.profile import FeedResponse
from ..services.feed import FeedSelector, build_card, get_feed_selector
from ..services.profile_service import ProfileService, get_profile_service
from ..utils.http import not_modified
from .deps import get_viewer_id

router = APIRouter(tags=["feed"])


@router.get("/feed", response_model=FeedResponse, response_model_by_alias=True)
async def load_feed(
    response: Response,
    request: Request,
    viewer_id: str = Depends(get_viewer_id),
    limit: Optional[int] = None,
    profiles: ProfileService = Depends(get_profile_service),
    selector: FeedSelector = Depends(get_feed_selector),
):
    me = await profiles.get_profile(viewer_id)
    if not me:
        raise HTTPException(status_code=404, detail="profile not found")

    snapshot = await selector.load_feed(me)
    page = snapshot[: max(1, int(limit))] if limit else snapshot
    payload = FeedResponse(profiles=[build_card(p) for p in page], total=len(snapshot))
    if not_modified(request, response, payload.model_dump(by_alias=True)):
        return Response(status_code=304, headers={"ETag": response.headers["ETag"]})
    return payload


__all__ = ["router"]
