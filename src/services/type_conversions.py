"""
Conversions between stored rows, package records and bulk inputs.

Export direction:
    package_portion_size(row) - stored portion size method -> tagged variant
    package_locale(locale) - Locale row -> PackageLocale

Import direction:
    from_package_food / from_package_category / from_package_locale -
    package records -> bulk sync inputs (dto.py)

Stored portion size parameters use the same camelCase keys as the package
variant, so a method survives export and import unchanged: every key that is
not a base key (method, description, useForRecipes, conversionFactor) is
grouped under "parameters" on import and spread back on export.
"""

from typing import Any, Dict, List

from pydantic import ValidationError as PydanticValidationError

from src.models.locale import Locale
from src.services.dto import (
    AssociatedFoodInput,
    AttributesInput,
    BulkCategoryInput,
    BulkFoodInput,
    LocaleInput,
    NutrientRecordInput,
    PortionSizeMethodInput,
)
from src.services.exceptions import PortionSizeConversionError
from src.services.package_schemas import (
    PORTION_SIZE_BASE_KEYS,
    PORTION_SIZE_METHOD_ADAPTER,
    PORTION_SIZE_METHODS,
    InheritableAttributes,
    PackageAssociatedFood,
    PackageCategory,
    PackageFood,
    PackageLocale,
    PortionSizeMethod,
)


# ============================================================================
# Export direction
# ============================================================================


def package_portion_size(row) -> PortionSizeMethod:
    """
    Convert a stored portion size method row to its package variant.

    Args:
        row: FoodPortionSizeMethod or CategoryPortionSizeMethod (anything with
            id, method, description, conversion_factor, use_for_recipes and
            parameters attributes)

    Returns:
        The validated tagged variant

    Raises:
        PortionSizeConversionError: Unknown method or invalid parameters
    """
    if row.method not in PORTION_SIZE_METHODS:
        raise PortionSizeConversionError(
            row.id,
            row.parameters,
            f"Unexpected portion size estimation method: {row.method}",
        )

    record = dict(row.parameters or {})
    record.update(
        {
            "method": row.method,
            "description": row.description,
            "conversionFactor": row.conversion_factor,
            "useForRecipes": row.use_for_recipes,
        }
    )

    try:
        return PORTION_SIZE_METHOD_ADAPTER.validate_python(record)
    except PydanticValidationError as e:
        raise PortionSizeConversionError(row.id, row.parameters, str(e)) from e


def package_attributes(attributes) -> InheritableAttributes:
    """Attributes row (or None) -> package attributes with unset fields omitted."""
    if attributes is None:
        return InheritableAttributes()
    return InheritableAttributes(
        ready_meal_option=attributes.ready_meal_option,
        same_as_before_option=attributes.same_as_before_option,
        reasonable_amount=attributes.reasonable_amount,
        use_in_recipes=attributes.use_in_recipes,
    )


def package_locale(locale: Locale) -> PackageLocale:
    return PackageLocale(
        id=locale.code,
        english_name=locale.english_name,
        local_name=locale.local_name,
        respondent_language=locale.respondent_language_id,
        admin_language=locale.admin_language_id,
        flag_code=locale.country_flag_code,
        text_direction=locale.text_direction,
        food_index_language_backend_id=locale.food_index_language_backend_id,
        food_index_enabled=locale.food_index_enabled,
    )


# ============================================================================
# Import direction
# ============================================================================


def _group_parameters(record: Dict[str, Any]) -> Dict[str, Any]:
    base = {key: record[key] for key in PORTION_SIZE_BASE_KEYS if key in record}
    base["parameters"] = {
        key: value for key, value in record.items() if key not in PORTION_SIZE_BASE_KEYS
    }
    return base


def from_package_portion_size(psm: PortionSizeMethod) -> PortionSizeMethodInput:
    grouped = _group_parameters(psm.to_package())
    return PortionSizeMethodInput(
        method=grouped["method"],
        description=grouped["description"],
        conversion_factor=grouped.get("conversionFactor", 1.0),
        use_for_recipes=grouped.get("useForRecipes", False),
        parameters=grouped["parameters"],
    )


def from_package_attributes(attributes: InheritableAttributes) -> AttributesInput:
    return AttributesInput(
        ready_meal_option=attributes.ready_meal_option,
        same_as_before_option=attributes.same_as_before_option,
        reasonable_amount=attributes.reasonable_amount,
        use_in_recipes=attributes.use_in_recipes,
    )


def from_package_associated_food(associated: PackageAssociatedFood) -> AssociatedFoodInput:
    return AssociatedFoodInput(
        food_code=associated.food_code,
        category_code=associated.category_code,
        text=dict(associated.prompt_text),
        generic_name=dict(associated.generic_name),
        link_as_main=associated.link_as_main,
        multiple=bool(associated.multiple),
    )


def from_package_nutrient_table_codes(codes: Dict[str, str]) -> List[NutrientRecordInput]:
    return [
        NutrientRecordInput(table_id=table_id, record_id=record_id)
        for table_id, record_id in codes.items()
    ]


def from_package_food(food: PackageFood) -> BulkFoodInput:
    """
    Convert a package food to a bulk sync input.

    The thumbnail path is not carried over: thumbnails are produced by the
    image pipeline, not by imports.
    """
    return BulkFoodInput(
        code=food.code,
        version=food.version,
        name=food.name,
        english_name=food.english_name,
        alt_names={lang: list(names) for lang, names in food.alternative_names.items()},
        tags=list(food.tags),
        attributes=from_package_attributes(food.attributes),
        parent_categories=list(food.parent_categories),
        nutrient_records=from_package_nutrient_table_codes(food.nutrient_table_codes),
        portion_size_methods=[from_package_portion_size(psm) for psm in food.portion_size],
        associated_foods=[from_package_associated_food(a) for a in food.associated_foods],
        brand_names=list(food.brand_names),
    )


def from_package_category(category: PackageCategory) -> BulkCategoryInput:
    return BulkCategoryInput(
        code=category.code,
        version=category.version,
        name=category.name,
        english_name=category.english_name,
        hidden=category.hidden,
        tags=list(category.tags),
        attributes=from_package_attributes(category.attributes),
        parent_categories=list(category.parent_categories),
        portion_size_methods=[from_package_portion_size(psm) for psm in category.portion_size],
    )


def from_package_locale(locale: PackageLocale) -> LocaleInput:
    result = LocaleInput(
        code=locale.id,
        english_name=locale.english_name,
        local_name=locale.local_name,
        respondent_language_id=locale.respondent_language,
        admin_language_id=locale.admin_language,
        country_flag_code=locale.flag_code,
        text_direction=locale.text_direction,
        food_index_language_backend_id=locale.food_index_language_backend_id,
    )
    if locale.food_index_enabled is not None:
        result.food_index_enabled = locale.food_index_enabled
    return result
