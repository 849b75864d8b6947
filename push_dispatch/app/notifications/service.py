import asyncio
import logging
from typing import Any, List, Optional, Protocol

from firebase_admin import exceptions, messaging

from .schemas import NotificationRequest, SendResult, TokenOutcome
from ..config import Settings
from ..errors import NoTokensError, NoValidTokensError, UpstreamSendError, ValidationError

logger = logging.getLogger(__name__)

# Error codes for which FCM will never deliver to the token again
PERMANENTLY_INVALID_TOKEN_CODES = frozenset({
    "messaging/registration-token-not-registered",
    "messaging/invalid-registration-token",
    "messaging/mismatched-credential",
})

# Most specific classes first: the messaging errors subclass the generic ones
_ERROR_CODES = (
    (messaging.UnregisteredError, "messaging/registration-token-not-registered"),
    (messaging.SenderIdMismatchError, "messaging/mismatched-credential"),
    (messaging.QuotaExceededError, "messaging/message-rate-exceeded"),
    (messaging.ThirdPartyAuthError, "messaging/third-party-auth-error"),
    (exceptions.UnavailableError, "messaging/server-unavailable"),
    (exceptions.InternalError, "messaging/internal-error"),
)


def error_code_for(error: Optional[Exception]) -> Optional[str]:
    """
    Map the exception attached to a failed per-token send response to a
    canonical "messaging/<code>" string.

    Args:
        error: The exception from a SendResponse, or None

    Returns:
        The canonical error code, or None when there is no error
    """
    if error is None:
        return None
    for error_class, code in _ERROR_CODES:
        if isinstance(error, error_class):
            return code
    if isinstance(error, exceptions.InvalidArgumentError):
        # INVALID_ARGUMENT also covers payload errors (reserved data keys, oversized
        # messages); only a rejected registration token makes the token itself stale
        if "registration token" in str(error).lower():
            return "messaging/invalid-registration-token"
        return "messaging/invalid-argument"
    if isinstance(error, exceptions.FirebaseError) and error.code:
        return f"messaging/{error.code.lower().replace('_', '-')}"
    return "messaging/unknown-error"


def filter_valid_tokens(tokens: List[Any]) -> List[str]:
    """Keep the entries that are non-empty strings after trimming, as stored and in order."""
    return [token for token in tokens if isinstance(token, str) and token.strip()]


def mask_token(token: str) -> str:
    return f"{token[:8]}..." if len(token) > 12 else token


class TokenStore(Protocol):
    def fetch_tokens(self, user_id: str) -> Any: ...

    def remove_tokens(self, user_id: str, tokens: List[str]) -> None: ...


class MulticastSender(Protocol):
    def send_each_for_multicast(self, message: messaging.MulticastMessage) -> messaging.BatchResponse: ...


class NotificationDispatcher:
    """
    Sends one notification to every registered device of a user and prunes
    tokens that FCM reports as permanently invalid.
    """

    def __init__(self, token_store: TokenStore, sender: MulticastSender, settings: Settings):
        self.token_store = token_store
        self.sender = sender
        self.settings = settings
        logger.info("NotificationDispatcher initialized")

    def build_message(self, request: NotificationRequest, tokens: List[str]) -> messaging.MulticastMessage:
        """Build the multicast payload. Platform delivery hints come straight from settings."""
        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(
                title=request.title,
                body=request.body
            ),
            data=request.data,
            android=messaging.AndroidConfig(
                priority=self.settings.android_priority,
                notification=messaging.AndroidNotification(
                    sound=self.settings.android_sound,
                    channel_id=self.settings.android_channel_id
                )
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(
                        sound=self.settings.apns_sound,
                        badge=self.settings.apns_badge
                    )
                )
            )
        )

    async def dispatch(self, request: NotificationRequest) -> SendResult:
        """
        Send a push notification to all of the target user's devices.

        Args:
            request: The parsed notification request

        Returns:
            SendResult with per-token outcomes and the tokens pruned from the store

        Raises:
            ValidationError: If targetUserId, title or body is missing
            NotFoundError: If the user document does not exist
            NoTokensError: If the user has no token list
            NoValidTokensError: If no token survives filtering
            UpstreamSendError: If the FCM call itself fails
        """
        missing = request.missing_fields()
        if missing:
            logger.warning(f"Missing required fields: {', '.join(missing)}")
            raise ValidationError()

        user_id = request.targetUserId
        if '/' in user_id:
            raise ValidationError("targetUserId must not contain '/'.")

        logger.info(f"Attempting to send notification to user: {user_id}")

        # Use asyncio.to_thread for sync Firestore client blocking calls
        stored_tokens = await asyncio.to_thread(self.token_store.fetch_tokens, user_id)
        if not isinstance(stored_tokens, list) or not stored_tokens:
            logger.warning(f"No FCM tokens found for user: {user_id}")
            raise NoTokensError()

        tokens = filter_valid_tokens(stored_tokens)
        if not tokens:
            logger.warning(f"No valid FCM tokens found for user after filtering: {user_id}")
            raise NoValidTokensError()

        result = await self._send(request, tokens)
        logger.info(
            f"FCM send response for user {user_id}: "
            f"SuccessCount={result.successCount}, FailureCount={result.failureCount}"
        )

        stale_tokens = self._stale_tokens(result.perTokenOutcome)
        if stale_tokens:
            # Delivery already happened, so a failed cleanup is only logged
            try:
                await asyncio.to_thread(self.token_store.remove_tokens, user_id, stale_tokens)
                result.removedTokens = stale_tokens
            except Exception as e:
                logger.error(f"Error removing invalid tokens for user {user_id}: {str(e)}", exc_info=True)

        return result

    async def _send(self, request: NotificationRequest, tokens: List[str]) -> SendResult:
        result = SendResult()
        batch_size = self.settings.fcm_batch_size

        logger.info(f"Sending FCM message '{request.title}' with data {request.data} to {len(tokens)} token(s)")

        for i in range(0, len(tokens), batch_size):
            batch = tokens[i:i + batch_size]
            message = self.build_message(request, batch)
            try:
                response = await asyncio.to_thread(self.sender.send_each_for_multicast, message)
            except Exception as e:
                logger.error(f"FCM multicast send failed: {str(e)}")
                raise UpstreamSendError(f"Failed to send notification via FCM: {str(e)}") from e

            result.successCount += response.success_count
            result.failureCount += response.failure_count

            for token, resp in zip(batch, response.responses):
                if resp.success:
                    result.perTokenOutcome.append(TokenOutcome(token=token, success=True))
                    continue
                error_code = error_code_for(resp.exception)
                logger.error(f"Token failed: {mask_token(token)}, Error: {error_code} ({resp.exception})")
                result.perTokenOutcome.append(TokenOutcome(token=token, success=False, errorCode=error_code))

        return result

    @staticmethod
    def _stale_tokens(outcomes: List[TokenOutcome]) -> List[str]:
        stale = []
        for outcome in outcomes:
            if outcome.errorCode in PERMANENTLY_INVALID_TOKEN_CODES and outcome.token not in stale:
                stale.append(outcome.token)
        return stale
