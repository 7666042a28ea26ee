"""Service layer exception classes for the food package engine.

Every failure a caller can act on is raised as a ServiceError subclass that
keeps the affected identifiers as attributes, so a caller can render
"Category codes already exist: A, B, C" style diagnostics without parsing
messages.

Exception Hierarchy:
    ServiceError
    ├── ValidationError
    │   └── ReferentialIntegrityError
    ├── ConflictError
    ├── PermissionDenied
    ├── LocaleNotFound
    ├── PortionSizeConversionError
    ├── PackageExportError
    ├── PackageImportError
    ├── PackageConversionError
    └── PackageValidationFileErrors
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Union


class ServiceError(Exception):
    """Base exception for all service layer errors.

    All service-specific exceptions should inherit from this class.
    """

    pass


class ValidationError(ServiceError):
    """Raised when input data validation fails.

    Args:
        errors: List of human-readable problems, all reported at once

    Example:
        >>> raise ValidationError(["Associated food 1 of food 'F1' sets both codes"])
        ValidationError: Validation failed: Associated food 1 of food 'F1' sets both codes
    """

    def __init__(self, errors: List[str]):
        self.errors = errors
        error_msg = "; ".join(errors)
        super().__init__(f"Validation failed: {error_msg}")


class ReferentialIntegrityError(ValidationError):
    """Raised when referenced codes do not resolve to existing rows.

    Args:
        kind: Referenced entity kind (e.g. "Category", "Food")
        codes: Every unresolved code found in one pass

    Example:
        >>> raise ReferentialIntegrityError("Category", ["MISSING1", "MISSING2"])
        ReferentialIntegrityError: Validation failed: Category codes not found: MISSING1, MISSING2
    """

    def __init__(self, kind: str, codes: Iterable[str], locale_id: Optional[str] = None):
        self.kind = kind
        self.codes = sorted(codes)
        self.locale_id = locale_id
        where = f" in locale {locale_id}" if locale_id else ""
        super().__init__([f"{kind} codes not found{where}: {', '.join(self.codes)}"])


class ConflictError(ServiceError):
    """Raised by the abort conflict policy when codes already exist.

    Args:
        kind: Entity kind (e.g. "Food", "Category", "Locale")
        codes: Every conflicting code, not just the first

    Example:
        >>> raise ConflictError("Food", ["EXISTING_FOOD"])
        ConflictError: Food codes already exist: EXISTING_FOOD
    """

    def __init__(self, kind: str, codes: Iterable[str]):
        self.kind = kind
        self.codes = sorted(codes)
        super().__init__(f"{kind} codes already exist: {', '.join(self.codes)}")


class PermissionDenied(ServiceError):
    """Raised when the caller lacks a permission.

    Args:
        permission: The missing permission name
        locales: Locales the permission is missing for (empty for global permissions)
    """

    def __init__(self, permission: str, locales: Optional[Iterable[str]] = None):
        self.permission = permission
        self.locales = sorted(locales or [])
        if self.locales:
            message = f"Permission '{permission}' denied for locales: {', '.join(self.locales)}"
        else:
            message = f"Permission '{permission}' denied"
        super().__init__(message)


class LocaleNotFound(ServiceError):
    """Raised when a locale code does not exist."""

    def __init__(self, locale_id: str):
        self.locale_id = locale_id
        super().__init__(f"Locale '{locale_id}' not found")


class PortionSizeConversionError(ServiceError):
    """Raised when a stored portion size method cannot be converted to a package record."""

    def __init__(self, record_id: int, parameters: object, reason: str):
        self.record_id = record_id
        self.parameters = parameters
        self.reason = reason
        super().__init__(
            f"Failed to convert portion size method (record ID = {record_id}, "
            f"parameters = {parameters}): {reason}"
        )


class PackageExportError(ServiceError):
    """Raised when an exported record fails package validation."""

    def __init__(self, entity: str, identifier: str, details: str, locale_id: Optional[str] = None):
        self.entity = entity
        self.identifier = identifier
        self.details = details
        self.locale_id = locale_id
        where = f" (locale: {locale_id})" if locale_id else ""
        super().__init__(f"Validation failed for {entity} {identifier}{where}: {details}")


class PackageImportError(ServiceError):
    """Raised when a verified package cannot be read for import."""

    pass


class PackageConversionError(ServiceError):
    """Raised when a foreign-format package cannot be converted.

    Args:
        source_file: Workbook the problem was found in
        problems: Every problem found in that workbook
    """

    def __init__(self, source_file: str, problems: Iterable[str]):
        self.source_file = source_file
        self.problems = list(problems)
        super().__init__(f"{source_file}: {'; '.join(self.problems)}")


# ============================================================================
# Package verification errors
# ============================================================================

VERIFICATION_MESSAGES: Dict[str, str] = {
    "invalidZipFile": "Uploaded file is not a valid zip archive",
    "packageJsonNotFound": "package.json was not found in the archive",
    "invalidPackageJson": "package.json is invalid: {message}",
    "invalidJsonSyntax": "Invalid JSON syntax: {message}",
    "schemaError": "{path}: {errors}",
    "requiredFileMissing": "Required file is missing",
    "requiredFileWrongPath": "Required file must be at the archive root, found at {archivePath}",
    "uploadedFileNotAccessible": "Uploaded file is not accessible",
    "conversionError": "{message}",
    "unexpectedError": "Unexpected error: {message}",
}


@dataclass
class FileValidationMessage:
    """One problem found in one package member."""

    key: str  # Message key, see VERIFICATION_MESSAGES
    params: Dict[str, Union[str, int]] = field(default_factory=dict)

    def __str__(self) -> str:
        template = VERIFICATION_MESSAGES.get(self.key, self.key)
        try:
            return template.format(**self.params)
        except KeyError:
            return f"{template} {self.params}"


class PackageValidationFileErrors(ServiceError):
    """Raised when package verification fails.

    Problems are collected per file rather than fail-fast, so one
    verification run reports every broken member.

    Args:
        file_errors: {file name: [messages]}; archive-level problems are
            reported under the "_uploadedFile" key
    """

    def __init__(self, file_errors: Dict[str, List[FileValidationMessage]]):
        self.file_errors = file_errors
        details = "; ".join(
            f"{name}: {', '.join(str(message) for message in messages)}"
            for name, messages in sorted(file_errors.items())
        )
        super().__init__(f"Package validation failed: {details}")
