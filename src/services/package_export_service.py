"""
Package Export Service - run an export job and produce the package archive.

The exporter writes into a temporary directory which is zipped into the
downloads directory under a timestamped name; the temporary directory is
removed whatever the outcome.

Usage:
    from src.services.package_export_service import export_package
    from src.services.package_schemas import PackageExportOptions

    options = PackageExportOptions(locales=["en_GB"], include=["foods", "categories"])
    archive_path = export_package(options, progress_callback=print)
"""

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Optional

from sqlalchemy.orm import Session

from src.services.database import session_scope
from src.services.locale_service import get_locale
from src.services.logging_utils import get_service_logger, log_operation
from src.services.package_exporter import PackageExporter
from src.services.package_schemas import PackageExportOptions
from src.services.package_writers import create_package_writer
from src.services.permission_checks import (
    AccessPolicy,
    StaticAccessPolicy,
    check_food_list_permissions,
)
from src.utils.config import Config, get_config
from src.utils.constants import IMAGES_DIRECTORY, INCLUDE_PORTION_SIZE_IMAGES
from src.utils.datetime_utils import timestamped_filename

logger = get_service_logger(__name__)

ARCHIVE_PREFIX = "food-package"
ARCHIVE_LOCALES_LENGTH = 12


def archive_file_name(locales) -> str:
    """Timestamped archive name carrying (a prefix of) the exported locale codes."""
    locales_part = "-".join(locales)[:ARCHIVE_LOCALES_LENGTH]
    return timestamped_filename(f"{ARCHIVE_PREFIX}-{locales_part}", "zip")


def create_unique_file(path: Path) -> Path:
    """
    Create an empty file at path, or at "<stem>-N<suffix>" if path exists.

    Returns:
        Path of the created file
    """
    candidate = path
    counter = 1
    while True:
        try:
            with open(candidate, "x"):
                return candidate
        except FileExistsError:
            candidate = path.with_name(f"{path.stem}-{counter}{path.suffix}")
            counter += 1


def zip_directory(source_dir: Path, archive_path: Path) -> None:
    """Zip every file under source_dir with paths relative to it."""
    with zipfile.ZipFile(archive_path, "w", zipfile.ZIP_DEFLATED) as archive:
        for root, _, files in os.walk(source_dir):
            for file_name in sorted(files):
                file_path = Path(root) / file_name
                archive.write(file_path, file_path.relative_to(source_dir).as_posix())


class ImageCopier:
    """
    Copies referenced images from the image store into the package.

    Images missing from the store are logged and listed in `missing`; the
    export carries on without them.
    """

    def __init__(self, images_dir: Path, destination_dir: Path):
        self.images_dir = Path(images_dir)
        self.destination_dir = Path(destination_dir)
        self.missing = []

    def __call__(self, relative_path: str) -> None:
        source = self.images_dir / relative_path
        destination = self.destination_dir / relative_path

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
        except OSError as e:
            self.missing.append(relative_path)
            log_operation(
                logger,
                "copy_image",
                "failed",
                level=logging.WARNING,
                path=relative_path,
                error=str(e),
            )


def _ignore_progress(progress: float) -> None:
    pass


def _export_package_impl(
    options: PackageExportOptions,
    progress_callback: Callable[[float], None],
    config: Config,
    session: Session,
) -> Path:
    for locale_id in options.locales:
        get_locale(locale_id, session)

    temp_dir = Path(tempfile.mkdtemp(prefix="food-package-"))
    log_operation(logger, "export_package", "started", temp_dir=str(temp_dir))

    try:
        images_path = temp_dir / IMAGES_DIRECTORY
        if INCLUDE_PORTION_SIZE_IMAGES in options.include:
            images_path.mkdir()
        copy_image = ImageCopier(config.images_dir, images_path)

        writer = create_package_writer(options.format, temp_dir)
        exporter = PackageExporter(
            session,
            writer,
            options,
            temp_dir,
            progress_callback,
            copy_image,
            batch_size=config.export_batch_size,
        )
        exporter.export()

        config.downloads_dir.mkdir(parents=True, exist_ok=True)
        archive_path = create_unique_file(config.downloads_dir / archive_file_name(options.locales))
        try:
            zip_directory(temp_dir, archive_path)
        except Exception:
            archive_path.unlink()
            raise
    finally:
        shutil.rmtree(temp_dir)

    log_operation(
        logger,
        "export_package",
        "success",
        archive=str(archive_path),
        missing_images=len(copy_image.missing),
    )
    return archive_path


def export_package(
    options: PackageExportOptions,
    progress_callback: Optional[Callable[[float], None]] = None,
    session: Optional[Session] = None,
    access: Optional[AccessPolicy] = None,
    config: Optional[Config] = None,
) -> Path:
    """
    Export locales into a package archive.

    Args:
        options: Locales, stages and output format
        progress_callback: Called with the overall progress in [0, 1]
        session: Optional database session
        access: Permission policy of the caller (None grants everything)
        config: Configuration supplying the image store and downloads
            directory (defaults to the global configuration)

    Returns:
        Path of the archive in the downloads directory

    Raises:
        PermissionDenied: Missing food list permission for a locale
        LocaleNotFound: An exported locale does not exist
        PackageExportError: A stored record does not form a valid package record
        PortionSizeConversionError: A stored portion size method is malformed
    """
    if access is None:
        access = StaticAccessPolicy.allow_all()
    check_food_list_permissions(access, options.locales)

    if progress_callback is None:
        progress_callback = _ignore_progress
    if config is None:
        config = get_config()

    if session is not None:
        return _export_package_impl(options, progress_callback, config, session)
    with session_scope() as session:
        return _export_package_impl(options, progress_callback, config, session)
