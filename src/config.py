import os
import uuid
from typing import Optional

from aws_lambda_powertools import Logger
from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

import entities

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


def get_logger(service: Optional[str] = None, level: Optional[str] = None) -> Logger:
    kwargs = {
        "json_default": entities.json_default,
        "level": level or os.environ.get("LOG_LEVEL", "INFO"),
    }
    if service:
        kwargs["service"] = service
    return Logger(**kwargs)


logger = get_logger(service="config")


class Config(BaseSettings):
    model_config = SettingsConfigDict(frozen=True)

    source_user_group_id: str
    target_device_group_id: str

    azure_tenant_id: str
    azure_client_id: str
    azure_client_secret: str

    graph_base_url: str = GRAPH_BASE_URL
    graph_request_timeout_seconds: int = 30

    cache_target_group_membership: bool = True

    log_level: str = "INFO"

    post_update_to_slack: bool = False
    slack_channel_id: str = ""
    slack_bot_token: str = ""

    s3_bucket_for_reports_name: str = ""
    s3_bucket_prefix_for_partitions: str = "device-sync"

    @field_validator("source_user_group_id", "target_device_group_id")
    @classmethod
    def validate_group_id(cls, v: str) -> str:
        # Entra ID object ids are GUIDs
        try:
            uuid.UUID(v)
        except ValueError as e:
            raise ValueError(f"'{v}' is not a valid directory group id") from e
        return v.lower()

    @field_validator("graph_base_url", "s3_bucket_prefix_for_partitions")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


_config: Optional[Config] = None


def get_config() -> Config:
    global _config  # noqa: PLW0603
    if _config is None:
        _config = Config()  # type: ignore # noqa: PGH003
        logger.debug(
            "Loaded configuration",
            extra={
                "source_user_group_id": _config.source_user_group_id,
                "target_device_group_id": _config.target_device_group_id,
                "cache_target_group_membership": _config.cache_target_group_membership,
            },
        )
    return _config
