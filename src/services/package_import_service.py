"""
Package Import Service - apply a verified package to the database.

Import flow:
1. Read the members named by the include options from the verified directory
2. Apply the locale, food and category code filters
3. Check permissions for the locales and every locale whose food list changes
4. In one transaction: update locales, then per locale (sorted) categories
   before foods, so foods may reference categories introduced by the same
   package

Any failure rolls back the whole import; there is no partial commit.

Usage:
    from src.services.package_import_service import import_package
    from src.services.package_schemas import PackageImportOptions

    options = PackageImportOptions(include=["foods", "categories"])
    result = import_package(verified_path, options)
    print(result.get_summary())
"""

import json
import os
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from src.services.category_bulk_service import bulk_update_categories
from src.services.database import session_scope
from src.services.dto import BulkCategoryInput, BulkFoodInput, BulkUpdateResult, LocaleInput
from src.services.exceptions import PackageImportError
from src.services.food_bulk_service import bulk_update_foods
from src.services.locale_service import bulk_update_locales
from src.services.logging_utils import get_service_logger, log_operation
from src.services.package_schemas import (
    CATEGORIES_FILE_ADAPTER,
    FOODS_FILE_ADAPTER,
    LOCALES_FILE_ADAPTER,
    PackageImportOptions,
)
from src.services.permission_checks import (
    AccessPolicy,
    StaticAccessPolicy,
    check_edit_food_list_permissions,
    check_global_locale_permissions,
)
from src.services.type_conversions import (
    from_package_category,
    from_package_food,
    from_package_locale,
)
from src.utils.constants import (
    CATEGORIES_FILE,
    CONFLICT_OVERWRITE,
    FOODS_FILE,
    INCLUDE_CATEGORIES,
    INCLUDE_FOODS,
    INCLUDE_LOCALES,
    LOCALES_FILE,
)

logger = get_service_logger(__name__)

ChangeCallback = Callable[[Optional[str], List[str]], None]


def get_verified_output_path(upload_dir: Union[str, Path], file_id: str) -> Path:
    """Directory holding the verified (extracted or converted) package for an upload."""
    return Path(upload_dir) / f"verified-{file_id}"


# ============================================================================
# Result
# ============================================================================


@dataclass
class LocaleImportCounts:
    """Written and skipped record counts for one locale."""

    foods_written: int = 0
    foods_skipped: int = 0
    categories_written: int = 0
    categories_skipped: int = 0


class PackageImportResult:
    """Result of a package import with per-locale tracking."""

    def __init__(self):
        self.locales_written: List[str] = []
        self.locales_skipped: List[str] = []
        self.locale_counts: Dict[str, LocaleImportCounts] = {}

    def _counts(self, locale_id: str) -> LocaleImportCounts:
        if locale_id not in self.locale_counts:
            self.locale_counts[locale_id] = LocaleImportCounts()
        return self.locale_counts[locale_id]

    def add_locales(self, result: BulkUpdateResult) -> None:
        self.locales_written.extend(result.affected_codes)
        self.locales_skipped.extend(result.skipped_codes)

    def add_categories(self, result: BulkUpdateResult) -> None:
        counts = self._counts(result.locale_id)
        counts.categories_written += result.affected_count
        counts.categories_skipped += len(result.skipped_codes)

    def add_foods(self, result: BulkUpdateResult) -> None:
        counts = self._counts(result.locale_id)
        counts.foods_written += result.affected_count
        counts.foods_skipped += len(result.skipped_codes)

    @property
    def total_foods(self) -> int:
        return sum(counts.foods_written for counts in self.locale_counts.values())

    @property
    def total_categories(self) -> int:
        return sum(counts.categories_written for counts in self.locale_counts.values())

    def get_summary(self) -> str:
        """Generate user-friendly summary for CLI display."""
        lines = ["=" * 60, "Package Import Summary", "=" * 60]

        if self.locales_written or self.locales_skipped:
            lines.append(
                f"Locales: {len(self.locales_written)} written, "
                f"{len(self.locales_skipped)} skipped"
            )

        for locale_id in sorted(self.locale_counts):
            counts = self.locale_counts[locale_id]
            lines.append(f"  {locale_id}:")
            lines.append(
                f"    Categories: {counts.categories_written} written, "
                f"{counts.categories_skipped} skipped"
            )
            lines.append(
                f"    Foods: {counts.foods_written} written, {counts.foods_skipped} skipped"
            )

        lines.append("")
        lines.append(f"Total foods written: {self.total_foods}")
        lines.append(f"Total categories written: {self.total_categories}")
        lines.append("=" * 60)
        return "\n".join(lines)


# ============================================================================
# Reading the verified package
# ============================================================================


def _read_member(verified_path: Path, file_name: str, adapter: TypeAdapter):
    """Read and validate one package member."""
    file_path = verified_path / file_name
    if not file_path.exists():
        raise PackageImportError(f"Package member not found: {file_name}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return adapter.validate_python(json.load(f))
    except json.JSONDecodeError as e:
        raise PackageImportError(f"Invalid JSON in {file_name}: {e}") from e
    except PydanticValidationError as e:
        raise PackageImportError(f"Invalid {file_name}: {e}") from e


def _locale_selected(options: PackageImportOptions, locale_id: str) -> bool:
    return not options.locale_filter or locale_id in options.locale_filter


def _code_selected(code_filter: Optional[List[str]], code: str) -> bool:
    return not code_filter or code in code_filter


# ============================================================================
# Import
# ============================================================================


def _apply(
    locale_records: List[LocaleInput],
    category_records: Dict[str, List[BulkCategoryInput]],
    food_records: Dict[str, List[BulkFoodInput]],
    changed_locales: List[str],
    options: PackageImportOptions,
    session: Session,
    on_change: Optional[ChangeCallback],
) -> PackageImportResult:
    strategies = options.conflict_strategies
    result = PackageImportResult()

    if locale_records:
        result.add_locales(
            bulk_update_locales(locale_records, strategies.locales, session=session, on_change=on_change)
        )

    for locale_id in changed_locales:
        categories = category_records.get(locale_id)
        foods = food_records.get(locale_id)

        if categories:
            result.add_categories(
                bulk_update_categories(
                    locale_id, categories, strategies.categories, session=session, on_change=on_change
                )
            )

        if foods:
            result.add_foods(
                bulk_update_foods(
                    locale_id, foods, strategies.foods, session=session, on_change=on_change
                )
            )

    return result


def import_package(
    verified_path: Union[str, Path],
    options: PackageImportOptions,
    access: Optional[AccessPolicy] = None,
    session: Optional[Session] = None,
    on_change: Optional[ChangeCallback] = None,
) -> PackageImportResult:
    """
    Import a verified package.

    Args:
        verified_path: Directory produced by package verification
        options: Include options, code filters and conflict strategies
        access: Permission policy of the caller (None grants everything,
            for trusted local use)
        session: Optional session; joins the caller's transaction when given
        on_change: Cache invalidation hook passed to the bulk services

    Returns:
        PackageImportResult with per-locale counts

    Raises:
        PackageImportError: Verified directory or an included member missing
            or unreadable
        PermissionDenied: Caller may not change locales or food lists
        ConflictError / ValidationError / LocaleNotFound: From the bulk
            services; the whole import is rolled back
    """
    verified_path = Path(verified_path)
    if access is None:
        access = StaticAccessPolicy.allow_all()

    if not verified_path.is_dir():
        raise PackageImportError(f"Extracted package files not found: {verified_path}")

    log_operation(
        logger,
        "import_package",
        "started",
        path=os.fspath(verified_path),
        include=list(options.include),
    )

    locale_records: List[LocaleInput] = []
    category_records: Dict[str, List[BulkCategoryInput]] = defaultdict(list)
    food_records: Dict[str, List[BulkFoodInput]] = defaultdict(list)
    changed_locales = set()

    if INCLUDE_LOCALES in options.include:
        for locale in _read_member(verified_path, LOCALES_FILE, LOCALES_FILE_ADAPTER):
            if _locale_selected(options, locale.id):
                locale_records.append(from_package_locale(locale))

        if locale_records:
            check_global_locale_permissions(
                access, options.conflict_strategies.locales == CONFLICT_OVERWRITE
            )

    if INCLUDE_CATEGORIES in options.include:
        package_categories = _read_member(verified_path, CATEGORIES_FILE, CATEGORIES_FILE_ADAPTER)
        for locale_id, categories in package_categories.items():
            if not _locale_selected(options, locale_id):
                continue
            changed_locales.add(locale_id)
            category_records[locale_id].extend(
                from_package_category(category)
                for category in categories
                if _code_selected(options.category_filter, category.code)
            )

    if INCLUDE_FOODS in options.include:
        package_foods = _read_member(verified_path, FOODS_FILE, FOODS_FILE_ADAPTER)
        for locale_id, foods in package_foods.items():
            if not _locale_selected(options, locale_id):
                continue
            changed_locales.add(locale_id)
            food_records[locale_id].extend(
                from_package_food(food)
                for food in foods
                if _code_selected(options.food_filter, food.code)
            )

    check_edit_food_list_permissions(access, changed_locales)

    sorted_locales = sorted(changed_locales)
    if session is not None:
        result = _apply(
            locale_records, category_records, food_records, sorted_locales, options, session, on_change
        )
    else:
        with session_scope() as session:
            result = _apply(
                locale_records,
                category_records,
                food_records,
                sorted_locales,
                options,
                session,
                on_change,
            )

    log_operation(
        logger,
        "import_package",
        "success",
        locales=sorted_locales,
        foods=result.total_foods,
        categories=result.total_categories,
    )
    return result
