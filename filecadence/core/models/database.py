from pydantic import BaseModel, Field, field_validator
from filecadence.core.errors import ConfigurationError, ErrorCode

_DRIVER_PREFIX = 'postgresql+psycopg'


class PostgresConfig(BaseModel):
    """
    Connection settings for the PostgreSQL schedule store and event outbox.

    Every field except ``database_url`` is passed to ``create_async_engine``
    unchanged. The checker holds at most ``max_concurrency`` sessions at once,
    so a small pool is enough.
    """

    database_url: str = Field(..., description='psycopg3 async URL of the store')
    pool_size: int = Field(default=5, ge=1, description='Persistent connections')
    max_overflow: int = Field(default=5, ge=0, description='Extra connections under load')
    pool_timeout: int = Field(default=30, ge=1, description='Seconds to wait for a connection')
    pool_recycle: int = Field(default=1800, description='Connection lifetime in seconds')
    pool_pre_ping: bool = True
    echo: bool = False

    @field_validator('database_url')
    def validate_database_url(cls, v: str) -> str:
        if v.startswith(_DRIVER_PREFIX):
            return v
        scheme = v.split('://', 1)[0] if '://' in v else v[:20]
        raise ConfigurationError(
            message='invalid database URL scheme',
            code=ErrorCode.STORAGE_INVALID_URL,
            notes=[
                f'got: {scheme}://...',
                'schedule storage requires the psycopg3 async driver',
            ],
            help_text=f"use '{_DRIVER_PREFIX}://user:pass@host/db'",
        )
