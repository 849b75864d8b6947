class DispatchError(Exception):
    """Base error for a failed dispatch. Carries the HTTP status and the public message."""
    status_code = 500
    default_message = "Notification dispatch failed."

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(DispatchError):
    status_code = 400
    default_message = "Missing required fields (targetUserId, title, body)."


class MethodNotAllowedError(DispatchError):
    status_code = 405
    default_message = "Only POST requests are allowed."


class NotFoundError(DispatchError):
    status_code = 404
    default_message = "User not found."


class NoTokensError(DispatchError):
    status_code = 400
    default_message = "No FCM tokens found for this user."


class NoValidTokensError(DispatchError):
    status_code = 400
    default_message = "No valid FCM tokens for user."


class UpstreamSendError(DispatchError):
    status_code = 502
    default_message = "Failed to send notification via FCM."


class ConfigurationError(DispatchError):
    status_code = 500
    default_message = "Firebase initialization failed."


class MessagingNotConfiguredError(ConfigurationError):
    status_code = 503
    default_message = "Push messaging is not configured."
