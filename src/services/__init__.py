"""Services package - Export/import engine for food packages.

This package contains all service modules that move a locale's food graph
between the relational store and portable food packages.

Architecture:
- Services: Stateless functions organized by job (export, verify, import)
- Transactions: Managed via session_scope() context manager; every public
  operation accepts an optional session to join the caller's transaction
- Exceptions: Consistent error handling via ServiceError hierarchy
- Validation: Every input check runs before the first database write

Service Modules:
- package_exporter: Batched streaming of foods, categories and assets
- package_export_service: Export job producing the package archive
- package_verification_service: Upload verification and conversion
- package_import_service: Import job applying a verified package
- food_bulk_service: Bulk food synchronization with conflict policies
- category_bulk_service: Bulk category synchronization with conflict policies
- locale_service: Locale lookup and bulk synchronization

Infrastructure:
- exceptions: Custom exception classes for service layer errors
- database: Session management and database utilities
- child_sync: Delete-then-insert and natural key resolution helpers
- package_schemas: pydantic models of every package member
- type_conversions: Conversions between rows, package records and inputs
- permission_checks: Access policies and permission checks
- package_writers / package_handlers: Output formats and upload formats
"""

# Service modules
from . import (
    database,
    category_bulk_service,
    food_bulk_service,
    locale_service,
    package_export_service,
    package_exporter,
    package_import_service,
    package_verification_service,
)

# Bulk synchronization
from .category_bulk_service import bulk_update_categories
from .food_bulk_service import bulk_update_foods
from .locale_service import bulk_update_locales, get_locale, list_locale_codes

# Jobs
from .package_export_service import export_package
from .package_exporter import PackageExporter, batch_stream, batch_stream_grouped
from .package_import_service import (
    PackageImportResult,
    get_verified_output_path,
    import_package,
)
from .package_verification_service import verify_package

# Infrastructure - Exception hierarchy
from .exceptions import (
    ConflictError,
    FileValidationMessage,
    LocaleNotFound,
    PackageConversionError,
    PackageExportError,
    PackageImportError,
    PackageValidationFileErrors,
    PermissionDenied,
    PortionSizeConversionError,
    ReferentialIntegrityError,
    ServiceError,
    ValidationError,
)

# Infrastructure - Session management
from .database import session_scope

__all__ = [
    # Service modules
    "database",
    "category_bulk_service",
    "food_bulk_service",
    "locale_service",
    "package_export_service",
    "package_exporter",
    "package_import_service",
    "package_verification_service",
    # Bulk synchronization
    "bulk_update_categories",
    "bulk_update_foods",
    "bulk_update_locales",
    "get_locale",
    "list_locale_codes",
    # Jobs
    "export_package",
    "PackageExporter",
    "batch_stream",
    "batch_stream_grouped",
    "PackageImportResult",
    "get_verified_output_path",
    "import_package",
    "verify_package",
    # Infrastructure - Exception hierarchy
    "ServiceError",
    "ValidationError",
    "ReferentialIntegrityError",
    "ConflictError",
    "PermissionDenied",
    "LocaleNotFound",
    "PortionSizeConversionError",
    "PackageExportError",
    "PackageImportError",
    "PackageConversionError",
    "FileValidationMessage",
    "PackageValidationFileErrors",
    # Infrastructure - Session management
    "session_scope",
]
