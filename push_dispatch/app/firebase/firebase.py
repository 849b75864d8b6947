import json
import logging
from typing import Any, Dict, List

import firebase_admin
import google.cloud.firestore
from firebase_admin import credentials, firestore, messaging

from ..config import Settings
from ..errors import ConfigurationError, NotFoundError

logger = logging.getLogger(__name__)


def load_service_account(cert_json: str) -> Dict[str, Any]:
    """
    Parse the service account key held in FIREBASE_SERVICE_ACCOUNT.

    Some deploy tools store the key JSON as a quoted string, so a second
    decoding pass is applied when the first one yields a str.
    """
    try:
        cert_dict = json.loads(cert_json)
        if isinstance(cert_dict, str):
            cert_dict = json.loads(cert_dict)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e}") from e

    if not isinstance(cert_dict, dict):
        raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT must be a JSON object")
    return cert_dict


class FirebaseClients:
    """Handles to one initialized Firebase app: Firestore for tokens, FCM for delivery."""

    def __init__(self, app: firebase_admin.App):
        self.app = app
        self.firestore_db: google.cloud.firestore.Client = firestore.client(app)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirebaseClients":
        if not settings.firebase_service_account:
            raise ConfigurationError("FIREBASE_SERVICE_ACCOUNT environment variable is not set.")
        if not settings.firebase_project_id:
            raise ConfigurationError("FIREBASE_PROJECT_ID environment variable is not set.")

        try:
            # Try to get an app registered under our name by an earlier call
            app = firebase_admin.get_app(settings.firebase_app_name)
            logger.info(f"Retrieved existing Firebase app: {app.name}")
        except ValueError:
            cert_dict = load_service_account(settings.firebase_service_account)
            try:
                cred = credentials.Certificate(cert_dict)
                app = firebase_admin.initialize_app(
                    credential=cred,
                    options={"projectId": settings.firebase_project_id},
                    name=settings.firebase_app_name,
                )
            except ValueError as e:
                raise ConfigurationError(f"Invalid service account credentials: {e}") from e
            logger.info(f"Firebase Admin SDK initialized. App name: {app.name}")

        try:
            return cls(app)
        except Exception as e:
            raise ConfigurationError(f"Firestore client initialization failed: {e}") from e


class FirestoreTokenStore:
    """Reads and prunes the device token array kept on each user document."""

    def __init__(self, firestore_db: google.cloud.firestore.Client,
                 collection: str = "users", field: str = "fcmTokens"):
        self.firestore_db = firestore_db
        self.collection = collection
        self.field = field

    def fetch_tokens(self, user_id: str) -> Any:
        """
        Get the raw token field of a user document.

        Args:
            user_id: The user's document ID

        Returns:
            Whatever is stored in the token field, or None when it is absent

        Raises:
            NotFoundError: If the user document does not exist
        """
        user = self.firestore_db.collection(self.collection).document(user_id).get()
        if not user.exists:
            raise NotFoundError()
        return (user.to_dict() or {}).get(self.field)

    def remove_tokens(self, user_id: str, tokens: List[str]) -> None:
        """Remove tokens by value in a single atomic update; other entries keep their order."""
        user_ref = self.firestore_db.collection(self.collection).document(user_id)
        user_ref.update({self.field: firestore.ArrayRemove(list(tokens))})
        logger.info(f"Removed {len(tokens)} invalid token(s) for user {user_id}")


class FcmSender:
    """Thin wrapper binding FCM multicast sends to a specific Firebase app."""

    def __init__(self, app: firebase_admin.App = None):
        self.app = app

    def send_each_for_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        return messaging.send_each_for_multicast(message, app=self.app)
