"""
Package Verification Service - check an uploaded package before import.

Verification runs before any database write:
1. Require the import-package permission
2. Verify (and for foreign formats, convert) the archive
3. Require food list edit permission for every locale the package touches

On failure the verified output is removed; the uploaded archive is always
removed once verification has finished.

Usage:
    from src.services.package_verification_service import verify_package

    context = PackageHandlerContext(file_id="abc", upload_dir=config.uploads_dir)
    result = verify_package(uploaded_path, "native", context)
    print(result.summary.target_locales)
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from src.services.exceptions import (
    FileValidationMessage,
    PackageValidationFileErrors,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.services.package_handlers import (
    PackageHandlerContext,
    PackageVerificationResult,
    create_package_handler,
)
from src.services.permission_checks import (
    AccessPolicy,
    StaticAccessPolicy,
    check_edit_food_list_permissions,
    check_permission,
)
from src.utils.constants import PERMISSION_IMPORT_PACKAGE, UPLOADED_FILE_ERROR_KEY

logger = get_service_logger(__name__)


def verify_package(
    uploaded_path: Union[str, Path],
    package_format: str,
    context: PackageHandlerContext,
    access: Optional[AccessPolicy] = None,
    remove_upload: bool = True,
) -> PackageVerificationResult:
    """
    Verify an uploaded package and leave the native package for import.

    Args:
        uploaded_path: Uploaded archive
        package_format: "native" or "albane"
        context: Upload identifier and working directories
        access: Permission policy of the caller (None grants everything)
        remove_upload: Delete the uploaded archive afterwards

    Returns:
        PackageVerificationResult with the verified directory and a summary
        of the locales and members found

    Raises:
        PermissionDenied: Missing import-package permission or food list
            edit permission for a target locale
        PackageValidationFileErrors: Problems keyed by file name
    """
    uploaded_path = Path(uploaded_path)
    if access is None:
        access = StaticAccessPolicy.allow_all()

    log_operation(
        logger,
        "verify_package",
        "started",
        path=os.fspath(uploaded_path),
        package_format=package_format,
    )

    handler = create_package_handler(package_format, context)

    try:
        check_permission(access, PERMISSION_IMPORT_PACKAGE)

        if not uploaded_path.is_file():
            raise PackageValidationFileErrors(
                {UPLOADED_FILE_ERROR_KEY: [FileValidationMessage("uploadedFileNotAccessible")]}
            )

        try:
            result = handler.verify(uploaded_path)
            if result.summary.target_locales:
                check_edit_food_list_permissions(access, result.summary.target_locales)
        except Exception:
            handler.cleanup()
            raise
    except PackageValidationFileErrors as e:
        log_operation(
            logger,
            "verify_package",
            "invalid",
            level=logging.WARNING,
            files=sorted(e.file_errors),
        )
        raise
    finally:
        if remove_upload and uploaded_path.is_file():
            uploaded_path.unlink()

    log_operation(
        logger,
        "verify_package",
        "success",
        target_locales=result.summary.target_locales,
    )
    return result
