# filecadence/core/models/app.py
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing_extensions import Self
from filecadence.core.errors import (
    ConfigurationError,
    ErrorCode,
    ValidationReport,
    raise_collected,
)
from filecadence.core.models.database import PostgresConfig
from filecadence.core.storage.base import DEFAULT_NAMESPACE


class EngineConfig(BaseModel):
    """
    Settings for the poll-and-dispatch engine.

    Fields:
        - namespace: Store namespace holding schedule records
        - poll_interval_seconds: Cadence of run_forever (default: hourly)
        - retention_days: Age after which failed schedules are pruned
        - record_timeout_seconds: Time limit for processing one record (default: 30s), None = unbounded
        - max_concurrency: Records processed in parallel within one poll (1 = sequential)
        - storage: PostgreSQL settings; None selects the in-memory store
    """

    model_config = ConfigDict(frozen=True)

    namespace: str = Field(default=DEFAULT_NAMESPACE, min_length=1)
    poll_interval_seconds: float = Field(default=3600.0)
    retention_days: int = Field(default=30)
    record_timeout_seconds: Optional[float] = Field(default=30.0)
    max_concurrency: int = Field(default=1)
    storage: Optional[PostgresConfig] = None

    @model_validator(mode='after')
    def validate_bounds(self) -> Self:
        """Collect every out-of-range setting and raise them together."""
        report = ValidationReport('config')

        if self.poll_interval_seconds <= 0:
            report.add(
                ConfigurationError(
                    message='poll_interval_seconds must be positive',
                    code=ErrorCode.CONFIG_INVALID_ENGINE,
                    notes=[f'got poll_interval_seconds={self.poll_interval_seconds}'],
                )
            )
        if self.retention_days < 1:
            report.add(
                ConfigurationError(
                    message='retention_days must be at least 1',
                    code=ErrorCode.CONFIG_INVALID_ENGINE,
                    notes=[f'got retention_days={self.retention_days}'],
                )
            )
        if self.record_timeout_seconds is not None and self.record_timeout_seconds <= 0:
            report.add(
                ConfigurationError(
                    message='record_timeout_seconds must be positive',
                    code=ErrorCode.CONFIG_INVALID_ENGINE,
                    notes=[f'got record_timeout_seconds={self.record_timeout_seconds}'],
                    help_text='use None to disable the per-record timeout',
                )
            )
        if self.max_concurrency < 1:
            report.add(
                ConfigurationError(
                    message='max_concurrency must be at least 1',
                    code=ErrorCode.CONFIG_INVALID_ENGINE,
                    notes=[f'got max_concurrency={self.max_concurrency}'],
                    help_text='use 1 for sequential processing',
                )
            )

        raise_collected(report)
        return self
