"""
Content access API routes.

- GET /api/content/{content_id}/access: WATCH or UNLOCK for the caller
- GET /api/content/{content_id}/tree:   subtree with locked media stripped
"""
from typing import Optional

from fastapi import APIRouter, Depends, Header

from mediagate.core.errors import UnauthorizedError
from mediagate.features.feed.service import AccessStatus, FeedAccessService, RenderedNode


router = APIRouter(prefix="/api/content", tags=["content"])


def get_feed_service() -> FeedAccessService:
    return FeedAccessService()


def require_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity; authentication itself happens upstream."""
    if not x_user_id:
        raise UnauthorizedError("X-User-Id header is required")
    return x_user_id


@router.get("/{content_id}/access", response_model=AccessStatus)
def get_access_status(
    content_id: str,
    user_id: str = Depends(require_user_id),
    service: FeedAccessService = Depends(get_feed_service),
):
    """
    Access status of one content item.

    Errors:
        401: X-User-Id missing
        404: Unknown content, or locked content without a pricing plan
    """
    return service.get_access_status(content_id, user_id)


@router.get("/{content_id}/tree", response_model=RenderedNode)
def get_content_tree(
    content_id: str,
    user_id: str = Depends(require_user_id),
    service: FeedAccessService = Depends(get_feed_service),
):
    return service.render_tree(content_id, user_id)
