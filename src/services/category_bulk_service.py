"""
Category Bulk Service - synchronize a locale's categories from bulk input.

One call writes every record in one transaction:
1. Upsert the category rows keyed by (locale, code) under the conflict policy
2. Replace parent category links
3. Replace attributes (no row for all-null attributes)
4. Replace portion size methods, preserving input order

Every referenced category code is checked before anything is written. A
parent may be another category of the same input, so a whole category tree
can be imported in one call.

Usage:
    from src.services.category_bulk_service import bulk_update_categories

    with session_scope() as session:
        result = bulk_update_categories("en_GB", records, "overwrite", session=session)
"""

import logging
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from src.models.category import (
    Category,
    CategoryAttributes,
    CategoryCategory,
    CategoryPortionSizeMethod,
)
from src.models.base import new_version_token
from src.services.child_sync import (
    attributes_rows,
    check_duplicate_codes,
    portion_size_rows,
    raise_for_missing,
    replace_children,
    resolve_codes,
    upsert_by_code,
)
from src.services.database import session_scope
from src.services.dto import BulkCategoryInput, BulkUpdateResult
from src.services.exceptions import ConflictError
from src.services.locale_service import get_locale
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import CONFLICT_ABORT, CONFLICT_SKIP
from src.utils.name_utils import to_simple_name

logger = get_service_logger(__name__)

CATEGORY_UPDATE_COLUMNS = ["name", "english_name", "simple_name", "hidden", "tags", "version"]

ChangeCallback = Callable[[Optional[str], List[str]], None]


def _category_row(locale_id: str, record: BulkCategoryInput) -> dict:
    return {
        "locale_id": locale_id,
        "code": record.code,
        "name": record.name,
        "english_name": record.english_name,
        "simple_name": to_simple_name(record.name),
        "hidden": record.hidden,
        "tags": list(record.tags),
        "version": new_version_token(),
    }


def _bulk_update_categories_impl(
    locale_id: str,
    records: List[BulkCategoryInput],
    on_conflict: str,
    session: Session,
    on_change: Optional[ChangeCallback],
) -> BulkUpdateResult:
    if not records:
        return BulkUpdateResult(locale_id=locale_id)

    session.flush()
    get_locale(locale_id, session)

    codes = [record.code for record in records]
    check_duplicate_codes("Category", codes)

    existing, _ = resolve_codes(session, Category, codes, locale_id)
    if on_conflict == CONFLICT_ABORT and existing:
        log_operation(
            logger,
            "bulk_update_categories",
            "conflict",
            level=logging.WARNING,
            locale_id=locale_id,
            codes=sorted(existing),
        )
        raise ConflictError("Category", existing.keys())

    if on_conflict == CONFLICT_SKIP:
        affected_records = [record for record in records if record.code not in existing]
    else:
        affected_records = list(records)

    # Parents listed in the same input are created by this call
    parent_codes = {code for record in affected_records for code in record.parent_categories}
    _, missing = resolve_codes(session, Category, parent_codes - set(codes), locale_id)
    raise_for_missing({"Category": missing}, locale_id)

    affected = upsert_by_code(
        session,
        Category,
        "Category",
        [_category_row(locale_id, record) for record in records],
        on_conflict,
        CATEGORY_UPDATE_COLUMNS,
        locale_id=locale_id,
        existing=existing,
    )
    affected_ids = list(affected.values())

    parent_ids, _ = resolve_codes(session, Category, parent_codes, locale_id)
    link_rows = [
        {"category_id": parent_ids[parent_code], "sub_category_id": affected[record.code]}
        for record in affected_records
        for parent_code in dict.fromkeys(record.parent_categories)
    ]
    replace_children(session, CategoryCategory, "sub_category_id", affected_ids, link_rows)

    replace_children(
        session,
        CategoryAttributes,
        "category_id",
        affected_ids,
        attributes_rows("category_id", affected, affected_records),
    )
    replace_children(
        session,
        CategoryPortionSizeMethod,
        "category_id",
        affected_ids,
        portion_size_rows("category_id", affected, affected_records),
    )

    session.expire_all()

    result = BulkUpdateResult(
        locale_id=locale_id,
        affected_codes=sorted(affected),
        skipped_codes=sorted(existing) if on_conflict == CONFLICT_SKIP else [],
    )

    if on_change is not None and result.affected_codes:
        on_change(locale_id, result.affected_codes)

    log_operation(
        logger,
        "bulk_update_categories",
        "success",
        locale_id=locale_id,
        affected=result.affected_count,
        skipped=len(result.skipped_codes),
    )
    return result


def bulk_update_categories(
    locale_id: str,
    records: List[BulkCategoryInput],
    on_conflict: str,
    session: Optional[Session] = None,
    on_change: Optional[ChangeCallback] = None,
) -> BulkUpdateResult:
    """
    Create or update a locale's categories and replace their child rows.

    Empty input is a no-op. With the skip policy, categories that already
    exist are left untouched together with all of their child rows.

    Args:
        locale_id: Locale code
        records: Category records
        on_conflict: "abort", "overwrite" or "skip"
        session: Optional session; joins the caller's transaction when given
        on_change: Called with (locale_id, affected codes) after the update,
            e.g. to evict cached category trees

    Returns:
        BulkUpdateResult with the affected and skipped codes

    Raises:
        LocaleNotFound: Unknown locale
        ConflictError: abort policy and some codes exist, listing all of them
        ReferentialIntegrityError: Unknown parent category codes, listing all of them
        ValidationError: Duplicate codes in the input
    """
    if session is not None:
        return _bulk_update_categories_impl(locale_id, records, on_conflict, session, on_change)

    with session_scope() as session:
        return _bulk_update_categories_impl(locale_id, records, on_conflict, session, on_change)
