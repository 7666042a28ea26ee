"""Handler for Albane packages (a zip of spreadsheets converted on upload)."""

import zipfile
from pathlib import Path
from typing import Dict, List

from src.services.exceptions import FileValidationMessage, PackageValidationFileErrors
from src.services.package_handlers.albane_converter import (
    REQUIRED_FILES,
    AlbaneConversionResult,
    AlbanePackageBuilder,
)
from src.services.package_handlers.base import (
    PackageContentsSummary,
    PackageHandler,
    PackageVerificationResult,
    file_validation_messages,
    remove_directory,
)
from src.services.package_import_service import get_verified_output_path
from src.utils.constants import UPLOADED_FILE_ERROR_KEY

CONVERSION_ERROR_KEY = "package"


class AlbanePackageHandler(PackageHandler):
    """
    Verify and convert an Albane package.

    The required workbooks must sit at the archive root. The archive is
    extracted to a source directory, converted into a native package in the
    verified directory, and the source directory is removed whatever the
    outcome. The converted output is correct by construction, so the summary
    is built from the conversion result without re-validating the JSON.
    """

    def verify(self, uploaded_path: Path) -> PackageVerificationResult:
        source_path = Path(self.context.upload_dir) / f"albane-source-{self.context.file_id}"

        try:
            try:
                self._validate_archive(uploaded_path)
                self._extract_archive(uploaded_path, source_path)
            except PackageValidationFileErrors:
                raise
            except Exception as e:
                raise PackageValidationFileErrors(
                    {UPLOADED_FILE_ERROR_KEY: file_validation_messages(e)}
                ) from e

            try:
                self.extracted_path = get_verified_output_path(
                    self.context.upload_dir, self.context.file_id
                )
                result = AlbanePackageBuilder(source_path, self.context.albane_locale).build()
                result.write_package(self.extracted_path)
            except PackageValidationFileErrors:
                raise
            except Exception as e:
                raise PackageValidationFileErrors(
                    {CONVERSION_ERROR_KEY: file_validation_messages(e)}
                ) from e
        finally:
            remove_directory(source_path)

        return PackageVerificationResult(
            extracted_path=self.extracted_path,
            summary=self._summary(result),
        )

    def _summary(self, result: AlbaneConversionResult) -> PackageContentsSummary:
        files = PackageContentsSummary.empty_files()
        files["locales"] = bool(result.locales)
        files["foods"] = bool(result.foods)
        files["categories"] = bool(result.categories)
        return PackageContentsSummary(target_locales=sorted(result.foods), files=files)

    def _validate_archive(self, uploaded_path: Path) -> None:
        with zipfile.ZipFile(uploaded_path, "r") as archive:
            names = archive.namelist()

        # Workbook file name -> its path inside the archive
        found_paths: Dict[str, str] = {}
        for name in names:
            if name.endswith(".xlsx"):
                found_paths[name.split("/")[-1]] = name

        file_errors: Dict[str, List[FileValidationMessage]] = {}
        for required in REQUIRED_FILES:
            archive_path = found_paths.get(required)
            if archive_path is None:
                file_errors[required] = [FileValidationMessage("requiredFileMissing")]
            elif archive_path != required:
                file_errors[required] = [
                    FileValidationMessage("requiredFileWrongPath", {"archivePath": archive_path})
                ]

        if file_errors:
            raise PackageValidationFileErrors(file_errors)

    def _extract_archive(self, uploaded_path: Path, source_path: Path) -> None:
        with zipfile.ZipFile(uploaded_path, "r") as archive:
            archive.extractall(source_path)
