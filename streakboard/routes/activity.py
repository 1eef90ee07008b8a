"""Activity feed: recent history over HTTP, live updates over WebSocket."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect

from streakboard.dependencies import activity_feed, get_activity_log
from streakboard.schemas.activity import ActivityResponse
from streakboard.services.activity_service import ActivityLog
from streakboard.services.transactions import StorageError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get('/recent', response_model=list[ActivityResponse])
async def recent_activity(
    limit: int = Query(20, ge=1, le=100),
    user_id: int | None = Query(None, description='Only this user\'s activity'),
    log: ActivityLog = Depends(get_activity_log),
):
    """Most recent completions, newest first."""
    try:
        return await log.recent(limit=limit, user_id=user_id)
    except StorageError:
        raise HTTPException(status_code=500, detail='Storage failure')


@router.websocket('/ws/{user_id}')
async def websocket_endpoint(websocket: WebSocket, user_id: int):
    """WebSocket endpoint for activity-feed updates."""
    await activity_feed.connect(websocket, user_id)
    try:
        while True:
            # Wait for any message (text, ping, etc.) to keep connection alive
            message = await websocket.receive()
            if message.get('type') == 'websocket.disconnect':
                break
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.warning('Feed error for user %s: %s', user_id, e)
    finally:
        activity_feed.disconnect(websocket, user_id)
