"""Request-level dependencies shared by the routers."""

from fastapi import Header, HTTPException


async def get_viewer_id(x_user_id: str = Header(default="", alias="X-User-Id")) -> str:
    """Viewer identity, set by the upstream auth gateway."""
    viewer = x_user_id.strip()
    if not viewer:
        raise HTTPException(status_code=401, detail="missing X-User-Id header")
    return viewer


__all__ = ["get_viewer_id"]
