"""
Serverless entry point for hosts that call ``main(context)`` per request
(Appwrite-style: ``context.req``, ``context.res``, ``context.log``, ``context.error``).

The dispatcher is built on the first invocation of a warm container and
reused afterwards. A failed build is not cached, so the next invocation
tries again.
"""
import logging
from functools import lru_cache
from typing import Any, Optional

from ..app.config import settings
from ..app.dependencies import build_dispatcher
from ..app.errors import ConfigurationError
from ..app.logging_config import setup_logging
from ..app.notifications.adapter import error_payload, handle_send_request
from ..app.notifications.service import NotificationDispatcher

setup_logging(settings)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def default_dispatcher() -> Optional[NotificationDispatcher]:
    return build_dispatcher(settings)


async def main(context: Any, dispatcher: NotificationDispatcher = None):
    req = context.req

    if dispatcher is None and req.method.upper() == 'POST':
        try:
            dispatcher = default_dispatcher()
        except ConfigurationError as e:
            context.error(f"Error initializing Firebase Admin SDK: {e.message}")
            return context.res.json(error_payload(f"Firebase initialization failed: {e.message}"), 500)

    status_code, payload = await handle_send_request(dispatcher, req.method, req.body)
    if payload['success']:
        context.log(payload['message'])
    else:
        context.error(f"Send request failed with {status_code}: {payload['error']}")
    return context.res.json(payload, status_code)
