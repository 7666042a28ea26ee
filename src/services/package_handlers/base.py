"""
Shared types and JSON member validation for package handlers.

A handler takes an uploaded archive, checks it, and leaves a native-format
package in the verified directory for the import job. Problems are collected
per member file instead of failing on the first one, so one verification
run reports every broken file.

Schema errors are grouped two path levels deep. For foods.json and
categories.json the group path uses the record code instead of the array
index, e.g. "en_GB.APPL" with the message
"portionSize.0.as-served.servingImageSet: Field required".
"""

import json
import shutil
import zipfile
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from src.services.exceptions import (
    FileValidationMessage,
    PackageConversionError,
    PackageValidationFileErrors,
)
from src.services.package_schemas import LOCALE_KEYED_FILES, PACKAGE_FILE_ADAPTERS
from src.utils.constants import (
    AS_SERVED_SETS_FILE,
    CATEGORIES_FILE,
    DRINKWARE_SETS_FILE,
    FOODS_FILE,
    GUIDE_IMAGES_FILE,
    IMAGE_MAPS_FILE,
    LOCALES_FILE,
)

SCHEMA_ERROR_GROUPING_DEPTH = 2

# Member file name -> summary flag
SUMMARY_FILE_KEYS: Dict[str, str] = {
    LOCALES_FILE: "locales",
    FOODS_FILE: "foods",
    CATEGORIES_FILE: "categories",
    AS_SERVED_SETS_FILE: "asServedSets",
    IMAGE_MAPS_FILE: "imageMaps",
    GUIDE_IMAGES_FILE: "guideImages",
    DRINKWARE_SETS_FILE: "drinkwareSets",
}

PathRemapper = Callable[[Sequence[Union[str, int]]], str]


@dataclass
class PackageHandlerContext:
    """
    Where a handler works.

    Attributes:
        file_id: Upload identifier, used to name the verified directory
        upload_dir: Directory holding uploads and verified extractions
        albane_locale: Locale code assigned to converted Albane packages
    """

    file_id: str
    upload_dir: Path
    albane_locale: str = "fr_FR"


@dataclass
class PackageContentsSummary:
    """Locales touched by a package and which members it carries."""

    target_locales: List[str] = field(default_factory=list)
    files: Dict[str, bool] = field(default_factory=dict)

    @classmethod
    def empty_files(cls) -> Dict[str, bool]:
        files = {key: False for key in SUMMARY_FILE_KEYS.values()}
        files["nutrientTables"] = False
        return files

    def to_dict(self) -> Dict[str, Any]:
        return {"targetLocales": list(self.target_locales), "files": dict(self.files)}


@dataclass
class PackageVerificationResult:
    extracted_path: Path
    summary: PackageContentsSummary


class FileValidationFailure(Exception):
    """One or more problems with a single file, raised inside a handler."""

    def __init__(self, messages: List[FileValidationMessage]):
        self.messages = messages
        super().__init__("; ".join(str(message) for message in messages))


class PackageHandler(ABC):
    """Verifies one uploaded archive format."""

    def __init__(self, context: PackageHandlerContext):
        self.context = context
        self.extracted_path: Optional[Path] = None

    @abstractmethod
    def verify(self, uploaded_path: Path) -> PackageVerificationResult:
        """
        Check the archive and produce the verified native package.

        Raises:
            PackageValidationFileErrors: Problems keyed by file name
        """

    def cleanup(self) -> None:
        """Remove the verified output of this handler, if any."""
        if self.extracted_path is not None:
            remove_directory(self.extracted_path)


# ============================================================================
# Error conversion
# ============================================================================


def remove_directory(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)


def file_validation_messages(error: Exception) -> List[FileValidationMessage]:
    """Convert an exception raised while checking a file into messages."""
    if isinstance(error, FileValidationFailure):
        return list(error.messages)
    if isinstance(error, json.JSONDecodeError):
        return [FileValidationMessage("invalidJsonSyntax", {"message": str(error)})]
    if isinstance(error, zipfile.BadZipFile):
        return [FileValidationMessage("invalidZipFile")]
    if isinstance(error, PackageConversionError):
        return [
            FileValidationMessage("conversionError", {"message": f"{error.source_file}: {problem}"})
            for problem in error.problems
        ]
    return [FileValidationMessage("unexpectedError", {"message": str(error)})]


def format_schema_errors(
    error: PydanticValidationError,
    path_remapper: Optional[PathRemapper] = None,
    grouping_depth: int = SCHEMA_ERROR_GROUPING_DEPTH,
) -> List[FileValidationMessage]:
    """
    Group pydantic errors by path prefix.

    Each group becomes one schemaError message whose path is the first
    grouping_depth location elements (remapped when a remapper is given) and
    whose errors are "rest.of.path: message" strings, de-duplicated.
    """
    groups: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()

    for issue in error.errors():
        location = list(issue["loc"])
        group_path = location[:grouping_depth]
        remaining = location[grouping_depth:]

        group_key = ".".join(str(p) for p in group_path) if group_path else "(root)"
        if remaining:
            text = f"{'.'.join(str(p) for p in remaining)}: {issue['msg']}"
        else:
            text = issue["msg"]

        group = groups.setdefault(group_key, {"path": group_path, "errors": []})
        if text not in group["errors"]:
            group["errors"].append(text)

    messages = []
    for group_key, group in groups.items():
        path = group_key
        if path_remapper is not None and group["path"]:
            path = path_remapper(group["path"])
        messages.append(
            FileValidationMessage(
                "schemaError", {"path": path, "errors": "; ".join(group["errors"])}
            )
        )
    return messages


def code_path_remapper(data: Any) -> Optional[PathRemapper]:
    """
    Remapper for locale-keyed members: [locale, index, ...] -> "locale.CODE".

    Falls back to the dot-joined path when the record has no code.
    """
    if not isinstance(data, dict):
        return None

    def remap(path: Sequence[Union[str, int]]) -> str:
        if len(path) >= 2 and isinstance(path[1], int):
            locale_id = str(path[0])
            records = data.get(locale_id)
            if isinstance(records, list) and 0 <= path[1] < len(records):
                record = records[path[1]]
                code = record.get("code") if isinstance(record, dict) else None
                if code:
                    return f"{locale_id}.{code}"
        return ".".join(str(p) for p in path)

    return remap


# ============================================================================
# Member validation
# ============================================================================


def validate_json_file(file_path: Path, adapter: TypeAdapter, remap_codes: bool = False) -> Any:
    """
    Parse and validate one member.

    Returns:
        Validated contents, or None when the file does not exist (members
        are optional)

    Raises:
        FileValidationFailure: Schema errors
        json.JSONDecodeError: Invalid JSON
    """
    if not file_path.exists():
        return None

    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    try:
        return adapter.validate_python(data)
    except PydanticValidationError as e:
        remapper = code_path_remapper(data) if remap_codes else None
        raise FileValidationFailure(format_schema_errors(e, remapper)) from e


def validate_json_files(extracted_path: Path) -> Dict[str, Any]:
    """
    Validate every known member present in an extracted package.

    Returns:
        {file name: validated contents} for the members present

    Raises:
        PackageValidationFileErrors: Problems of every failing member
    """
    contents: Dict[str, Any] = {}
    errors: Dict[str, List[FileValidationMessage]] = {}

    for file_name, adapter in PACKAGE_FILE_ADAPTERS.items():
        try:
            data = validate_json_file(
                extracted_path / file_name, adapter, remap_codes=file_name in LOCALE_KEYED_FILES
            )
        except Exception as e:
            errors[file_name] = file_validation_messages(e)
            continue
        if data is not None:
            contents[file_name] = data

    if errors:
        raise PackageValidationFileErrors(errors)

    return contents
