from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration settings for the push dispatch service"""

    # Application settings
    service_name: str = "push-dispatch"
    environment: str = "dev"
    log_level: str = "INFO"
    log_json: bool = True
    path_prefix: str = ''
    cors_origins: List[str] = ["*"]

    # Firebase settings
    firebase_service_account: Optional[str] = None  # full service account key as a JSON string
    firebase_project_id: Optional[str] = None
    firebase_app_name: str = "push-dispatch"
    # Missing credentials abort startup when strict, otherwise every send answers 503
    strict_credentials: bool = True

    # Firestore layout
    users_collection: str = "users"
    tokens_field: str = "fcmTokens"

    # FCM settings
    fcm_batch_size: int = 500  # FCM allows up to 500 tokens per multicast request
    android_priority: str = "high"
    android_sound: Optional[str] = "default"
    android_channel_id: Optional[str] = None
    apns_sound: Optional[str] = "default"
    apns_badge: Optional[int] = 1

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


settings = Settings()


def get_prefix(path_prefix: str) -> str:
    if not path_prefix:
        return ''
    if not path_prefix.startswith('/'):
        path_prefix = f'/{path_prefix}'
    return path_prefix.rstrip('/')
