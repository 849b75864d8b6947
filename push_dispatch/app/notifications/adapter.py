"""
Hosting-agnostic request handling: raw method and body in, (status, JSON payload) out.

Both the FastAPI router and the serverless function entry point go through
handle_send_request so every host answers with the same status codes and
response envelope.
"""
import json
import logging
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from .schemas import NotificationRequest, SendResult
from .service import NotificationDispatcher
from ..errors import DispatchError, MessagingNotConfiguredError, MethodNotAllowedError, ValidationError

logger = logging.getLogger(__name__)

Body = Union[bytes, str, Dict[str, Any], None]


def parse_notification_request(body: Body) -> NotificationRequest:
    """
    Turn a raw request body into a NotificationRequest.

    Args:
        body: Raw bytes, a JSON string, an already decoded dict, or None

    Raises:
        ValidationError: If the body is empty, not JSON, not an object, or has wrongly typed fields
    """
    if isinstance(body, bytes):
        try:
            body = body.decode('utf-8')
        except UnicodeDecodeError:
            raise ValidationError("Invalid JSON body.")

    if isinstance(body, str):
        if not body.strip():
            raise ValidationError("Request body is empty or invalid.")
        try:
            payload = json.loads(body)
        except json.JSONDecodeError as e:
            logger.warning(f"Invalid JSON in request body: {e}")
            raise ValidationError("Invalid JSON body.")
    else:
        payload = body

    if not isinstance(payload, dict):
        raise ValidationError("Request body is empty or invalid.")

    try:
        return NotificationRequest.model_validate(payload)
    except PydanticValidationError as e:
        logger.warning(f"Invalid request payload: {e.errors()}")
        raise ValidationError("Invalid field types in request body.")


def success_payload(result: SendResult) -> Dict[str, Any]:
    return {
        'success': True,
        'message': result.message,
        'successCount': result.successCount,
        'failureCount': result.failureCount,
    }


def error_payload(message: str) -> Dict[str, Any]:
    return {'success': False, 'error': message}


async def handle_send_request(dispatcher: Optional[NotificationDispatcher], method: str,
                              body: Body) -> Tuple[int, Dict[str, Any]]:
    """
    Run a send request through the dispatch pipeline.

    Args:
        dispatcher: The dispatcher, or None when messaging is not configured
        method: HTTP method of the incoming request
        body: Raw request body

    Returns:
        Tuple of (HTTP status code, JSON-serializable response body)
    """
    try:
        if method.upper() != 'POST':
            raise MethodNotAllowedError()
        if dispatcher is None:
            raise MessagingNotConfiguredError()

        request = parse_notification_request(body)
        result = await dispatcher.dispatch(request)
    except DispatchError as e:
        logger.warning(f"Send request rejected with {e.status_code}: {e.message}")
        return e.status_code, error_payload(e.message)
    except Exception as e:
        # The exception text is surfaced to the caller, matching the legacy handlers
        logger.error(f"Unhandled error while sending notification: {str(e)}", exc_info=True)
        return 500, error_payload(f"Internal server error: {str(e)}")

    return 200, success_payload(result)
