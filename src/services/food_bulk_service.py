"""
Food Bulk Service - synchronize a locale's foods from bulk input.

One call writes every record in one transaction:
1. Upsert the food rows keyed by (locale, code) under the conflict policy
2. Replace parent category links
3. Replace attributes (no row for all-null attributes)
4. Replace associated foods
5. Replace portion size methods, preserving input order
6. Replace nutrient table mappings
7. Replace brand names
8. Notify on_change so cached views of the affected foods can be evicted

All input checks run before the first write and report every offending
code at once: associated food targets (exactly one of food/category code),
parent and associated category codes, associated food codes, and nutrient
table record pairs.

Usage:
    from src.services.food_bulk_service import bulk_update_foods

    result = bulk_update_foods("en_GB", records, "skip")
    print(result.affected_codes, result.skipped_codes)
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from src.models.base import new_version_token
from src.models.category import Category
from src.models.food import (
    AssociatedFood,
    Brand,
    Food,
    FoodAttributes,
    FoodCategory,
    FoodNutrient,
    FoodPortionSizeMethod,
)
from src.models.nutrient_table import NutrientTableRecord
from src.services.child_sync import (
    SQL_CHUNK_SIZE,
    attributes_rows,
    check_duplicate_codes,
    chunked,
    portion_size_rows,
    raise_for_missing,
    replace_children,
    resolve_codes,
    upsert_by_code,
)
from src.services.database import session_scope
from src.services.dto import BulkFoodInput, BulkUpdateResult, NutrientRecordInput
from src.services.exceptions import ConflictError, ValidationError
from src.services.locale_service import get_locale
from src.services.logging_utils import get_service_logger, log_operation
from src.utils.constants import CONFLICT_ABORT, CONFLICT_SKIP
from src.utils.name_utils import to_simple_name

logger = get_service_logger(__name__)

FOOD_UPDATE_COLUMNS = ["name", "english_name", "simple_name", "alt_names", "tags", "version"]

ChangeCallback = Callable[[Optional[str], List[str]], None]

# Each OR-ed (table, record) pair binds two parameters
NUTRIENT_CHUNK_SIZE = SQL_CHUNK_SIZE // 2


# ============================================================================
# Validation helpers
# ============================================================================


def validate_associated_foods(records: Iterable[BulkFoodInput]) -> List[str]:
    """
    Check that every associated food targets exactly one food or category.

    Returns:
        One message per violation (empty when the input is valid)
    """
    errors = []
    for record in records:
        for index, associated in enumerate(record.associated_foods):
            has_food = associated.food_code is not None
            has_category = associated.category_code is not None
            if has_food and has_category:
                errors.append(
                    f"Food '{record.code}' associated food {index}: "
                    f"both associatedFoodCode and associatedCategoryCode are set"
                )
            elif not has_food and not has_category:
                errors.append(
                    f"Food '{record.code}' associated food {index}: "
                    f"one of associatedFoodCode or associatedCategoryCode is required"
                )
    return errors


def resolve_nutrient_records(
    session: Session, references: Iterable[NutrientRecordInput]
) -> Tuple[Dict[NutrientRecordInput, int], Set[NutrientRecordInput]]:
    """
    Resolve (nutrient table, record id) pairs to record row ids.

    Pairs are looked up with one disjunctive query per chunk.

    Returns:
        Tuple of ({pair: id} for every pair found, set of pairs not found)
    """
    wanted = sorted(set(references), key=lambda ref: (ref.table_id, ref.record_id))
    found: Dict[NutrientRecordInput, int] = {}

    for chunk in chunked(wanted, NUTRIENT_CHUNK_SIZE):
        conditions = [
            and_(
                NutrientTableRecord.nutrient_table_code == ref.table_id,
                NutrientTableRecord.record_id == ref.record_id,
            )
            for ref in chunk
        ]
        query = select(
            NutrientTableRecord.nutrient_table_code,
            NutrientTableRecord.record_id,
            NutrientTableRecord.id,
        ).where(or_(*conditions))
        for table_id, record_id, row_id in session.execute(query):
            found[NutrientRecordInput(table_id=table_id, record_id=record_id)] = row_id

    missing = set(wanted) - set(found)
    return found, missing


def _food_row(locale_id: str, record: BulkFoodInput) -> dict:
    return {
        "locale_id": locale_id,
        "code": record.code,
        "name": record.name,
        "english_name": record.english_name,
        "simple_name": to_simple_name(record.name),
        "alt_names": {lang: list(names) for lang, names in record.alt_names.items()},
        "tags": list(record.tags),
        "version": new_version_token(),
    }


# ============================================================================
# Bulk update
# ============================================================================


def _bulk_update_foods_impl(
    locale_id: str,
    records: List[BulkFoodInput],
    on_conflict: str,
    session: Session,
    on_change: Optional[ChangeCallback],
) -> BulkUpdateResult:
    if not records:
        return BulkUpdateResult(locale_id=locale_id)

    session.flush()
    get_locale(locale_id, session)

    codes = [record.code for record in records]
    check_duplicate_codes("Food", codes)

    errors = validate_associated_foods(records)
    if errors:
        raise ValidationError(errors)

    existing, _ = resolve_codes(session, Food, codes, locale_id)
    if on_conflict == CONFLICT_ABORT and existing:
        log_operation(
            logger,
            "bulk_update_foods",
            "conflict",
            level=logging.WARNING,
            locale_id=locale_id,
            codes=sorted(existing),
        )
        raise ConflictError("Food", existing.keys())

    if on_conflict == CONFLICT_SKIP:
        affected_records = [record for record in records if record.code not in existing]
    else:
        affected_records = list(records)

    # Resolve every reference before writing anything
    parent_codes = {code for record in affected_records for code in record.parent_categories}
    associated_category_codes = {
        associated.category_code
        for record in affected_records
        for associated in record.associated_foods
        if associated.category_code is not None
    }
    associated_food_codes = {
        associated.food_code
        for record in affected_records
        for associated in record.associated_foods
        if associated.food_code is not None
    }
    nutrient_references = {ref for record in affected_records for ref in record.nutrient_records}

    category_ids, missing_categories = resolve_codes(
        session, Category, parent_codes | associated_category_codes, locale_id
    )
    # Foods of the same input may be associated with each other
    _, missing_foods = resolve_codes(session, Food, associated_food_codes - set(codes), locale_id)
    nutrient_ids, missing_nutrients = resolve_nutrient_records(session, nutrient_references)

    raise_for_missing(
        {
            "Category": missing_categories,
            "Food": missing_foods,
            "Nutrient table record": {
                f"{ref.table_id}/{ref.record_id}" for ref in missing_nutrients
            },
        },
        locale_id,
    )

    affected = upsert_by_code(
        session,
        Food,
        "Food",
        [_food_row(locale_id, record) for record in records],
        on_conflict,
        FOOD_UPDATE_COLUMNS,
        locale_id=locale_id,
        existing=existing,
    )
    affected_ids = list(affected.values())

    replace_children(
        session,
        FoodCategory,
        "food_id",
        affected_ids,
        [
            {"food_id": affected[record.code], "category_id": category_ids[parent_code]}
            for record in affected_records
            for parent_code in dict.fromkeys(record.parent_categories)
        ],
    )

    replace_children(
        session,
        FoodAttributes,
        "food_id",
        affected_ids,
        attributes_rows("food_id", affected, affected_records),
    )

    replace_children(
        session,
        AssociatedFood,
        "food_id",
        affected_ids,
        [
            {
                "food_id": affected[record.code],
                "associated_food_code": associated.food_code,
                "associated_category_code": associated.category_code,
                "text": dict(associated.text),
                "generic_name": dict(associated.generic_name),
                "link_as_main": associated.link_as_main,
                "multiple": associated.multiple,
                "order_by": index,
            }
            for record in affected_records
            for index, associated in enumerate(record.associated_foods)
        ],
    )

    replace_children(
        session,
        FoodPortionSizeMethod,
        "food_id",
        affected_ids,
        portion_size_rows("food_id", affected, affected_records),
    )

    replace_children(
        session,
        FoodNutrient,
        "food_id",
        affected_ids,
        [
            {"food_id": affected[record.code], "nutrient_table_record_id": nutrient_ids[ref]}
            for record in affected_records
            for ref in dict.fromkeys(record.nutrient_records)
        ],
    )

    replace_children(
        session,
        Brand,
        "food_id",
        affected_ids,
        [
            {"food_id": affected[record.code], "name": name}
            for record in affected_records
            for name in record.brand_names
        ],
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
        "bulk_update_foods",
        "success",
        locale_id=locale_id,
        affected=result.affected_count,
        skipped=len(result.skipped_codes),
    )
    return result


def bulk_update_foods(
    locale_id: str,
    records: List[BulkFoodInput],
    on_conflict: str,
    session: Optional[Session] = None,
    on_change: Optional[ChangeCallback] = None,
) -> BulkUpdateResult:
    """
    Create or update a locale's foods and replace their child rows.

    Empty input is a no-op. With the skip policy, foods that already exist
    are left untouched together with all of their child rows; only new foods
    are written.

    Args:
        locale_id: Locale code
        records: Food records
        on_conflict: "abort", "overwrite" or "skip"
        session: Optional session; joins the caller's transaction when given
        on_change: Called with (locale_id, affected codes) after the update

    Returns:
        BulkUpdateResult with the affected and skipped codes

    Raises:
        LocaleNotFound: Unknown locale
        ConflictError: abort policy and some codes exist, listing all of them
        ValidationError: Associated food with both or neither target code, or
            duplicate codes in the input
        ReferentialIntegrityError: Unknown category, food or nutrient record
            references (ValidationError listing each kind when several fail)

    Example:
        >>> bulk_update_foods("en_GB", [BulkFoodInput("A", "A", "A")], "abort")
        BulkUpdateResult(locale_id='en_GB', affected_codes=['A'], skipped_codes=[])
    """
    if session is not None:
        return _bulk_update_foods_impl(locale_id, records, on_conflict, session, on_change)

    with session_scope() as session:
        return _bulk_update_foods_impl(locale_id, records, on_conflict, session, on_change)
