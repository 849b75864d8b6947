from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from .adapter import handle_send_request
from .service import NotificationDispatcher
from ..dependencies import get_dispatcher

router = APIRouter()


@router.post('/send-fcm', tags=["Notifications"])
@router.post('/send', tags=["Notifications"])
async def send_fcm(
    request: Request,
    dispatcher: Annotated[Optional[NotificationDispatcher], Depends(get_dispatcher)]
):
    """
    Send a push notification to every registered device of targetUserId.

    Body: {"targetUserId": str, "title": str, "body": str, "data": {str: str}}
    """
    body = await request.body()
    status_code, payload = await handle_send_request(dispatcher, request.method, body)
    return JSONResponse(status_code=status_code, content=payload)
