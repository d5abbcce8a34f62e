from __future__ import annotations

from typing import TYPE_CHECKING, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import ArchiveOptions

if TYPE_CHECKING:
    import boto3


class S3Settings(BaseSettings):
    """Settings for S3 clients.

    You can adapt the following settings in your environment variables (or using and .env file):
    - S3_ENDPOINT_URL: The URL of the S3 server. Leave unset for AWS
    - S3_REGION: The region of the S3 server
    - S3_AWS_ACCESS_KEY_ID: The access key ID for the S3 client
    - S3_AWS_SECRET_ACCESS_KEY: The secret access key for the S3 client
    - S3_MAX_POOL_CONNECTIONS: Size of the client's connection pool

    When no access key is configured, boto3's default credential chain is used.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="S3_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # The endpoint URL of the S3 server
    endpoint_url: str | None = None

    # The region of the S3 server
    region: str | None = None

    # The access key ID for the S3 client
    aws_access_key_id: str | None = None

    # The secret access key for the S3 client
    aws_secret_access_key: str | None = None

    # Concurrent fetches share the client's pool
    max_pool_connections: int = 16

    def create_client(self) -> boto3.client:
        """Create a S3 client from the settings."""

        import boto3
        from botocore.client import Config as BotoConfig

        return boto3.client(
            "s3",
            endpoint_url=self.endpoint_url,
            region_name=self.region,
            aws_access_key_id=self.aws_access_key_id,
            aws_secret_access_key=self.aws_secret_access_key,
            config=BotoConfig(signature_version="s3v4", max_pool_connections=self.max_pool_connections),
        )


class ArchiveSettings(BaseSettings):
    """Default archive options, read from ``S3_ARCHIVE_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="S3_ARCHIVE_",
        extra="ignore",
    )

    format: Literal["zip", "tar"] = "zip"

    # Only "gzip" is supported, and only for tar
    compression: str | None = None

    compression_level: int = 6

    zip64: bool = True

    # Bytes read from an object body per step
    chunk_size: int = 64 * 1024

    # Bodies the writer accepts before append() blocks
    max_pending_entries: int = 1

    # Tar bodies of unknown length are spooled to disk past this size
    spool_max_size: int = 10 * 1024 * 1024

    def to_options(self, **overrides: object) -> ArchiveOptions:
        """Build :class:`ArchiveOptions`, applying non-None *overrides*."""
        values = self.model_dump()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ArchiveOptions(**values)
