"""Handler for packages in the native format (a zip of JSON members)."""

import json
import zipfile
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from src.services.exceptions import FileValidationMessage, PackageValidationFileErrors
from src.services.package_handlers.base import (
    SUMMARY_FILE_KEYS,
    FileValidationFailure,
    PackageContentsSummary,
    PackageHandler,
    PackageVerificationResult,
    file_validation_messages,
    validate_json_files,
)
from src.services.package_import_service import get_verified_output_path
from src.services.package_schemas import PackageManifest
from src.utils.constants import (
    CATEGORIES_FILE,
    FOODS_FILE,
    LOCALES_FILE,
    PACKAGE_JSON_FILE,
    UPLOADED_FILE_ERROR_KEY,
)


class NativePackageHandler(PackageHandler):
    """
    Verify a native package.

    The manifest is checked inside the archive before anything is
    extracted; then every member present is validated against its schema.
    """

    def verify(self, uploaded_path: Path) -> PackageVerificationResult:
        try:
            self._validate_archive(uploaded_path)
            self.extracted_path = get_verified_output_path(
                self.context.upload_dir, self.context.file_id
            )
            with zipfile.ZipFile(uploaded_path, "r") as archive:
                archive.extractall(self.extracted_path)
        except Exception as e:
            raise PackageValidationFileErrors(
                {UPLOADED_FILE_ERROR_KEY: file_validation_messages(e)}
            ) from e

        contents = validate_json_files(self.extracted_path)

        target_locales = set()
        for locale in contents.get(LOCALES_FILE, []):
            target_locales.add(locale.id)
        target_locales.update(contents.get(FOODS_FILE, {}).keys())
        target_locales.update(contents.get(CATEGORIES_FILE, {}).keys())

        files = PackageContentsSummary.empty_files()
        for file_name, key in SUMMARY_FILE_KEYS.items():
            files[key] = file_name in contents

        return PackageVerificationResult(
            extracted_path=self.extracted_path,
            summary=PackageContentsSummary(target_locales=sorted(target_locales), files=files),
        )

    def _validate_archive(self, uploaded_path: Path) -> None:
        with zipfile.ZipFile(uploaded_path, "r") as archive:
            try:
                content = archive.read(PACKAGE_JSON_FILE)
            except KeyError:
                raise FileValidationFailure([FileValidationMessage("packageJsonNotFound")])

        manifest = json.loads(content.decode("utf-8"))
        try:
            PackageManifest.model_validate(manifest)
        except PydanticValidationError as e:
            raise FileValidationFailure(
                [FileValidationMessage("invalidPackageJson", {"message": str(e)})]
            ) from e
