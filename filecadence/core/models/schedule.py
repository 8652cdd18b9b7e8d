from __future__ import annotations
import re
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from typing_extensions import Self
from filecadence.core.codec.serde import format_timestamp
from filecadence.core.errors import (
    ErrorCode,
    ScheduleValidationError,
    ValidationReport,
    raise_collected,
)
from filecadence.core.types.status import (
    FileFormat,
    ScheduleStatus,
    ScheduleType,
    Weekday,
)

FILE_GENERATE_TOPIC = 'file.generate'

_TIME_PATTERN = re.compile(r'^(\d{2}):(\d{2})$')
_EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'


class ScheduleSettings(BaseModel):
    """
    Per-schedule recurrence settings (the stored ``config`` object).

    Interpretation depends on the schedule type:
        - daily: time
        - weekly / monthly-*: dayOfWeek, time
        - custom: cronExpression

    Values are kept as plain strings so a stored record with a bad value
    still loads; the calculator rejects it when computing the next run.
    Unknown keys are preserved.
    """

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    day_of_week: Optional[str] = Field(default=None, alias='dayOfWeek')
    time: Optional[str] = Field(default=None, description='Wall-clock time, HH:MM (24h)')
    cron_expression: Optional[str] = Field(default=None, alias='cronExpression')


class FileSchedule(BaseModel):
    """
    A stored recurring file-share schedule.

    Serialized with camelCase keys (``to_record``) and timestamps in
    ``YYYY-MM-DDTHH:MM:SS.mmmZ`` form. ``schedule_type`` stays a raw string:
    an unknown tag is a per-record failure discovered at dispatch time, not a
    load error.
    """

    model_config = ConfigDict(populate_by_name=True, extra='allow')

    schedule_id: str = Field(alias='scheduleId', min_length=1)
    customer_id: str = Field(alias='customerId')
    customer_email: str = Field(alias='customerEmail')
    schedule_type: str = Field(alias='scheduleType')
    config: ScheduleSettings = Field(default_factory=ScheduleSettings)
    timezone: str = 'UTC'
    file_type: str = Field(default='products', alias='fileType')
    format: str = FileFormat.EXCEL.value
    status: ScheduleStatus = ScheduleStatus.ACTIVE
    next_run: Optional[datetime] = Field(default=None, alias='nextRun')
    last_run: Optional[datetime] = Field(default=None, alias='lastRun')
    last_error: Optional[str] = Field(default=None, alias='lastError')
    execution_count: int = Field(default=0, ge=0, alias='executionCount')
    created_at: Optional[datetime] = Field(default=None, alias='createdAt')
    updated_at: Optional[datetime] = Field(default=None, alias='updatedAt')

    @field_validator('config', mode='before')
    @classmethod
    def _null_config(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator('next_run', 'last_run', 'created_at', 'updated_at', mode='after')
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @field_serializer('next_run', 'last_run', 'created_at', 'updated_at')
    def _serialize_timestamp(self, value: Optional[datetime]) -> Optional[str]:
        return format_timestamp(value) if value is not None else None

    def to_record(self) -> dict[str, Any]:
        """Dump as the JSON object written to the store."""
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)

    def trigger_payload(self) -> dict[str, str]:
        """Payload of the ``file.generate`` event for this schedule."""
        return FileGenerateEvent(
            schedule_id=self.schedule_id,
            customer_id=self.customer_id,
            customer_email=self.customer_email,
            file_type=self.file_type,
            format=self.format,
        ).model_dump(by_alias=True)

    def as_triggered(self, now: datetime, next_run: datetime) -> FileSchedule:
        """Copy advanced past one successful dispatch at ``now``."""
        return self.model_copy(
            update={
                'last_run': now,
                'next_run': next_run,
                'execution_count': self.execution_count + 1,
                'updated_at': now,
            }
        )

class FileGenerateEvent(BaseModel):
    """Outbound trigger payload, published on ``file.generate``."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    schedule_id: str = Field(alias='scheduleId')
    customer_id: str = Field(alias='customerId')
    customer_email: str = Field(alias='customerEmail')
    file_type: str = Field(alias='fileType')
    format: str


class ScheduleRequest(BaseModel):
    """
    Inbound payload from the creation endpoint.

    Examples:
        - Every day at 07:30 Berlin time:
          ScheduleRequest(customerId='c1', customerEmail='a@b.io',
                          scheduleType='daily', config={'time': '07:30'},
                          timezone='Europe/Berlin')
        - First Friday of each month at 09:00 UTC:
          ScheduleRequest(..., scheduleType='monthly-first-weekday',
                          config={'dayOfWeek': 'friday'})
    """

    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(alias='customerId', min_length=1)
    customer_email: str = Field(alias='customerEmail', pattern=_EMAIL_PATTERN)
    schedule_type: ScheduleType = Field(alias='scheduleType')
    config: ScheduleSettings = Field(default_factory=ScheduleSettings)
    timezone: str = 'UTC'
    file_type: str = Field(default='products', alias='fileType')
    format: FileFormat = FileFormat.EXCEL

    @model_validator(mode='after')
    def validate_settings(self) -> Self:
        """Reject configs the calculator could not schedule."""
        report = ValidationReport('schedule')

        if self.config.time is not None and not is_valid_wall_time(self.config.time):
            report.add(
                ScheduleValidationError(
                    message=f"invalid time '{self.config.time}'",
                    code=ErrorCode.SCHEDULE_INVALID_TIME,
                    help_text="use 24h HH:MM, e.g. '09:00' or '17:45'",
                )
            )

        day = self.config.day_of_week
        if day is not None and day.lower() not in {d.value for d in Weekday}:
            report.add(
                ScheduleValidationError(
                    message=f"invalid dayOfWeek '{day}'",
                    code=ErrorCode.SCHEDULE_INVALID_WEEKDAY,
                    notes=[f'allowed: {[d.value for d in Weekday]}'],
                )
            )

        if self.schedule_type == ScheduleType.CUSTOM and not self.config.cron_expression:
            report.add(
                ScheduleValidationError(
                    message='custom schedule requires config.cronExpression',
                    code=ErrorCode.SCHEDULE_INVALID_CRON,
                    help_text="provide a 5-field cron expression, e.g. '30 8 * * 1-5'",
                )
            )

        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            report.add(
                ScheduleValidationError(
                    message=f"unknown timezone '{self.timezone}'",
                    code=ErrorCode.SCHEDULE_INVALID_TIMEZONE,
                    help_text="use an IANA zone name such as 'UTC' or 'America/New_York'",
                )
            )

        raise_collected(report)
        return self


def is_valid_wall_time(value: str) -> bool:
    match = _TIME_PATTERN.match(value)
    if match is None:
        return False
    return int(match.group(1)) < 24 and int(match.group(2)) < 60
