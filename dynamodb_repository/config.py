"""
Repository configuration.

Values come from keyword arguments first, then from the environment (a .env
file in the working directory is loaded on import):

    AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY   credentials (optional)
    AWS_REGION                                  region, default us-east-1
    DYNAMODB_ENDPOINT_URL                       DynamoDB Local / moto endpoint
    DYNAMODB_TABLE_PREFIX                       prepended to every table name
    ENVIRONMENT                                 dev | staging | prod | test
    DYNAMODB_MAX_CONCURRENT_OPERATIONS          wave size for batch writes
    DYNAMODB_DEFAULT_PAGE_SIZE                  take used by query_page when none is given
    DYNAMODB_DEBUG_LOGGING                      log every request at DEBUG
"""

import os
from typing import Any, Dict, Optional

from botocore.config import Config
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

load_dotenv()

VALID_ENVIRONMENTS = ('dev', 'staging', 'prod', 'test')


def _env(name: str, default: Optional[str] = None):
    return lambda: os.getenv(name, default)


def _env_int(name: str, default: Optional[int] = None):
    def read():
        raw = os.getenv(name)
        return int(raw) if raw else default
    return read


class DynamoDBConfig(BaseModel):
    """Connection, table naming and repository behaviour settings."""

    # Connection
    aws_access_key_id: Optional[str] = Field(default_factory=_env("AWS_ACCESS_KEY_ID"))
    aws_secret_access_key: Optional[str] = Field(default_factory=_env("AWS_SECRET_ACCESS_KEY"))
    region_name: str = Field(default_factory=_env("AWS_REGION", "us-east-1"))
    endpoint_url: Optional[str] = Field(
        default_factory=_env("DYNAMODB_ENDPOINT_URL"),
        description="Override endpoint, e.g. DynamoDB Local"
    )
    max_pool_connections: int = Field(default=50, description="botocore connection pool size")
    retries: int = Field(default=3, description="botocore retry attempts per request")
    timeout_seconds: float = Field(default=30.0, description="Connect and read timeout")

    # Table naming
    table_prefix: str = Field(default_factory=_env("DYNAMODB_TABLE_PREFIX", ""))
    environment: str = Field(default_factory=_env("ENVIRONMENT", "dev"))

    # Repository behaviour
    max_concurrent_operations: int = Field(
        default_factory=_env_int("DYNAMODB_MAX_CONCURRENT_OPERATIONS", 10),
        description="Size of each wave of single-entity operations in batch calls"
    )
    default_page_size: Optional[int] = Field(
        default_factory=_env_int("DYNAMODB_DEFAULT_PAGE_SIZE"),
        description="Item cap applied by query_page when the caller passes no take"
    )
    enable_debug_logging: bool = Field(
        default_factory=lambda: os.getenv("DYNAMODB_DEBUG_LOGGING", "false").lower() == "true",
        description="Log the parameters of every store request at DEBUG level"
    )

    model_config = ConfigDict(validate_assignment=True)

    @field_validator('region_name')
    @classmethod
    def validate_region(cls, v):
        if not v:
            raise ValueError("AWS region name is required")
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        if v not in VALID_ENVIRONMENTS:
            raise ValueError(f"Environment must be one of: {list(VALID_ENVIRONMENTS)}")
        return v

    @field_validator('max_concurrent_operations', 'default_page_size', 'max_pool_connections')
    @classmethod
    def validate_positive(cls, v, info):
        if v is not None and v < 1:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return v

    def get_table_name(self, base_name: str) -> str:
        """Full table name: ``[prefix_][environment_]base_name``.

        The environment segment is left out in prod.
        """
        parts = [self.table_prefix] if self.table_prefix else []
        if self.environment != "prod":
            parts.append(self.environment)
        parts.append(base_name)
        return "_".join(parts)

    def boto_config(self) -> Config:
        """botocore client settings for pooling, retries and timeouts."""
        return Config(
            retries={'max_attempts': self.retries},
            max_pool_connections=self.max_pool_connections,
            read_timeout=self.timeout_seconds,
            connect_timeout=self.timeout_seconds
        )

    def resource_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for ``Session.resource('dynamodb', ...)``."""
        kwargs = {'region_name': self.region_name, 'config': self.boto_config()}
        if self.endpoint_url:
            kwargs['endpoint_url'] = self.endpoint_url
        return kwargs

    @classmethod
    def from_env(cls) -> 'DynamoDBConfig':
        return cls()

    @classmethod
    def for_local_development(cls, endpoint_url: str = "http://localhost:8000") -> 'DynamoDBConfig':
        """Settings for DynamoDB Local with dummy credentials and request logging on."""
        return cls(
            aws_access_key_id="local",
            aws_secret_access_key="local",
            region_name="us-east-1",
            endpoint_url=endpoint_url,
            environment="dev",
            enable_debug_logging=True
        )
