import logging
from typing import Optional

from fastapi import Request

from .config import Settings
from .errors import ConfigurationError
from .firebase import FcmSender, FirebaseClients, FirestoreTokenStore
from .notifications.service import NotificationDispatcher

logger = logging.getLogger(__name__)


def build_dispatcher(settings: Settings) -> Optional[NotificationDispatcher]:
    """
    Construct the dispatcher and its Firebase collaborators once per process.

    Returns None when credentials are missing and strict_credentials is off.

    Raises:
        ConfigurationError: If credentials are missing or invalid in strict mode
    """
    try:
        clients = FirebaseClients.from_settings(settings)
    except ConfigurationError as e:
        if settings.strict_credentials:
            logger.critical(f"Error initializing Firebase Admin SDK: {e.message}")
            raise
        logger.warning(f"Push messaging disabled, Firebase is not configured: {e.message}")
        return None

    token_store = FirestoreTokenStore(
        clients.firestore_db,
        collection=settings.users_collection,
        field=settings.tokens_field
    )
    return NotificationDispatcher(token_store, FcmSender(clients.app), settings)


async def get_dispatcher(request: Request) -> Optional[NotificationDispatcher]:
    return getattr(request.app.state, 'dispatcher', None)
