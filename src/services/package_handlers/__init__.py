"""
Package handlers - verify uploaded archives before import.

Usage:
    from src.services.package_handlers import create_package_handler

    handler = create_package_handler("native", context)
    result = handler.verify(uploaded_path)
"""

from src.services.package_handlers.albane_handler import AlbanePackageHandler
from src.services.package_handlers.base import (
    PackageContentsSummary,
    PackageHandler,
    PackageHandlerContext,
    PackageVerificationResult,
)
from src.services.package_handlers.native_handler import NativePackageHandler
from src.utils.constants import UPLOAD_FORMAT_ALBANE


def create_package_handler(package_format: str, context: PackageHandlerContext) -> PackageHandler:
    """Albane packages get the converting handler; anything else is native."""
    if package_format == UPLOAD_FORMAT_ALBANE:
        return AlbanePackageHandler(context)
    return NativePackageHandler(context)


__all__ = [
    "AlbanePackageHandler",
    "NativePackageHandler",
    "PackageContentsSummary",
    "PackageHandler",
    "PackageHandlerContext",
    "PackageVerificationResult",
    "create_package_handler",
]
