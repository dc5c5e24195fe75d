from fastapi import APIRouter, Depends, HTTPException

from ..models.profile import Profile, ProfileUpsert
from ..services.exceptions import DomainValidationError
from ..services.profile_service import ProfileService, get_profile_service

router = APIRouter(prefix="/profiles", tags=["profiles"])


@router.get("/{user_id}", response_model=Profile, response_model_by_alias=True)
async def get_profile(
    user_id: str,
    service: ProfileService = Depends(get_profile_service),
) -> Profile:
    profile = await service.get_profile(user_id.strip())
    if not profile:
        raise HTTPException(status_code=404, detail="profile not found")
    return profile


@router.put("/{user_id}", response_model=Profile, response_model_by_alias=True)
async def upsert_profile(
    user_id: str,
    payload: ProfileUpsert,
    service: ProfileService = Depends(get_profile_service),
) -> Profile:
    try:
        return await service.upsert_profile(user_id, payload)
    except DomainValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


__all__ = ["router"]
