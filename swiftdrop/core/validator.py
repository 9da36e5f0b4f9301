"""
Checks candidate files against the upload policy.
"""

from typing import Iterable

from swiftdrop.exceptions import UploadValidationError
from swiftdrop.models.policy import UploadPolicy
from swiftdrop.models.task import FileDescriptor, Rejection

TYPE_NOT_ALLOWED = "type not allowed"


def validate(file: FileDescriptor, policy: UploadPolicy) -> list[str]:
    """
    Returns the policy violations for a file, size before type.

    An empty list means the file is admissible.
    """
    violations = []
    if file.size > policy.max_file_size:
        violations.append(f"exceeds size limit of {policy.max_file_size}")
    if file.mime_type.lower() not in policy.allowed_types:
        violations.append(TYPE_NOT_ALLOWED)
    return violations


def ensure_valid(file: FileDescriptor, policy: UploadPolicy) -> None:
    """Strict variant of `validate`: raises UploadValidationError on any violation."""
    if violations := validate(file, policy):
        raise UploadValidationError(file.name, violations)


def check_files(
    files: Iterable[FileDescriptor], policy: UploadPolicy
) -> tuple[list[FileDescriptor], list[Rejection]]:
    """Splits candidates into admissible files and rejections, keeping input order."""
    admissible: list[FileDescriptor] = []
    rejections: list[Rejection] = []
    for file in files:
        if violations := validate(file, policy):
            rejections.append(Rejection(name=file.name, reasons=tuple(violations)))
        else:
            admissible.append(file)
    return admissible, rejections
