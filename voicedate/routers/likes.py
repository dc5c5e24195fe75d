from fastapi import APIRouter, Depends, HTTPException, Request, Response

from ..models.likes import DecisionRequest, DecisionResult, MatchesResponse
from ..models.message import UnreadSummary
from ..repositories.exceptions import NotFoundRepositoryError
from ..services.exceptions import DomainValidationError, MatchCheckError
from ..services.likes_service import MatchEngine, get_match_engine
from ..services.message_service import MessagingService, get_messaging_service
from ..utils.http import not_modified
from .deps import get_viewer_id

router = APIRouter(tags=["matching"])


@router.post("/decisions", response_model=DecisionResult, response_model_by_alias=True)
async def record_decision(
    payload: DecisionRequest,
    viewer_id: str = Depends(get_viewer_id),
    engine: MatchEngine = Depends(get_match_engine),
) -> DecisionResult:
    try:
        return await engine.record_decision(
            viewer_id,
            payload.target_user_id,
            payload.decision,
            payload.call_duration_seconds,
        )
    except MatchCheckError as exc:
        # Like stored; match state unknown until the next matches refresh
        return DecisionResult(success=True, saved=True, matched=None, like=exc.like, error="match check failed")
    except DomainValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NotFoundRepositoryError:
        raise HTTPException(status_code=404, detail="profile not found") from None


@router.get("/matches", response_model=MatchesResponse, response_model_by_alias=True)
async def list_matches(
    response: Response,
    request: Request,
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
):
    payload = MatchesResponse(matches=await service.list_matches(viewer_id))
    if not_modified(request, response, payload.model_dump(by_alias=True)):
        return Response(status_code=304, headers={"ETag": response.headers["ETag"]})
    return payload


@router.get("/unread", response_model=UnreadSummary, response_model_by_alias=True)
async def unread_count(
    viewer_id: str = Depends(get_viewer_id),
    service: MessagingService = Depends(get_messaging_service),
) -> UnreadSummary:
    return await service.unread_count(viewer_id)


__all__ = ["router"]
