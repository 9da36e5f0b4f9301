"""
Pydantic models for the upload policy and transfer settings.
Provides robust validation for all settings.
"""

from typing import Any, Literal, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from swiftdrop.exceptions import ConfigurationError

DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

DEFAULT_ALLOWED_TYPES = frozenset(
    {
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "application/pdf",
        "text/plain",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "application/zip",
    }
)


def _split_types(value: Any) -> Any:
    """Accepts a comma/whitespace separated string as well as any iterable."""
    if isinstance(value, str):
        value = value.replace(",", " ").split()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(v).strip().lower() for v in value if str(v).strip())
    return value


class UploadPolicy(BaseModel):
    """Admission and concurrency policy consumed by the scheduler."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=0)
    allowed_types: frozenset[str] = Field(default=DEFAULT_ALLOWED_TYPES)
    max_concurrent_uploads: int = 3
    auto_compress: bool = False

    @field_validator("allowed_types", mode="before")
    @classmethod
    def normalize_types(cls, v: Any) -> Any:
        """MIME types are compared case-insensitively."""
        return _split_types(v)

    @field_validator("max_concurrent_uploads")
    @classmethod
    def validate_concurrency(cls, v: int) -> int:
        """Ensures a usable concurrency budget."""
        if v < 1:
            raise ValueError("Max concurrent uploads must be a positive integer.")
        return v

    def merged(self, changes: Mapping[str, Any]) -> "UploadPolicy":
        """
        Returns a new policy with `changes` applied on top of this one.

        Raises:
            ConfigurationError: If a key is unknown or a value fails validation.
        """
        data = self.model_dump()
        data.update(changes)
        try:
            return UploadPolicy.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid upload policy:\n{e}") from e

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        return set(cls.model_fields)


class TransferSettings(BaseModel):
    """Settings for building the transfer engine used by the CLI."""

    model_config = ConfigDict(validate_assignment=True, str_strip_whitespace=True)

    engine: Literal["http", "simulated"] = "simulated"
    upload_url: str = ""
    field_name: str = "file"
    max_attempts: int = 3
    timeout_seconds: float = Field(default=300.0, gt=0)
    failure_rate: float = Field(default=0.01, ge=0.0, le=1.0)
    auto_retries: int = Field(default=0, ge=0, le=10)

    @field_validator("max_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Max attempts must be between 1 and 10.")
        return v

    @field_validator("upload_url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Upload URL must start with http:// or https://.")
        return v

    @model_validator(mode="after")
    def validate_engine_config(self) -> "TransferSettings":
        """The HTTP engine cannot run without a target URL."""
        if self.engine == "http" and not self.upload_url:
            raise ValueError("The http engine requires 'upload_url' to be set.")
        return self

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        return set(cls.model_fields)
