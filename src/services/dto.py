"""Data Transfer Objects for the bulk sync services.

These are the request shapes accepted by bulk_update_foods(),
bulk_update_categories() and bulk_update_locales(). They are produced from
package records by type_conversions.from_package_*() and are independent of
both the package JSON layout and the ORM row layout.

Usage:
    from src.services.dto import BulkFoodInput, PortionSizeMethodInput

    food = BulkFoodInput(
        code="APPL",
        name="Apple",
        english_name="Apple",
        parent_categories=["FRUT"],
        portion_size_methods=[
            PortionSizeMethodInput(method="direct-weight", description="weight"),
        ],
    )
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class AttributesInput:
    """Inheritable attributes of a food or category.

    Every field is nullable; None means "inherit from the parent categories".
    """

    ready_meal_option: Optional[bool] = None
    same_as_before_option: Optional[bool] = None
    reasonable_amount: Optional[int] = None
    use_in_recipes: Optional[int] = None

    def is_empty(self) -> bool:
        """True when no attribute is set, in which case no row is stored."""
        return (
            self.ready_meal_option is None
            and self.same_as_before_option is None
            and self.reasonable_amount is None
            and self.use_in_recipes is None
        )

    def to_row(self) -> Dict[str, Any]:
        return {
            "ready_meal_option": self.ready_meal_option,
            "same_as_before_option": self.same_as_before_option,
            "reasonable_amount": self.reasonable_amount,
            "use_in_recipes": self.use_in_recipes,
        }


@dataclass
class PortionSizeMethodInput:
    """One portion size method; variant-specific fields live in parameters."""

    method: str
    description: str
    conversion_factor: float = 1.0
    use_for_recipes: bool = False
    parameters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AssociatedFoodInput:
    """
    An associated food prompt.

    Exactly one of food_code and category_code must be set; the bulk
    service rejects the whole call otherwise.
    """

    food_code: Optional[str] = None
    category_code: Optional[str] = None
    text: Dict[str, str] = field(default_factory=dict)
    generic_name: Dict[str, str] = field(default_factory=dict)
    link_as_main: bool = False
    multiple: bool = False


@dataclass(frozen=True)
class NutrientRecordInput:
    """Reference to a nutrient table record by its natural key pair."""

    table_id: str
    record_id: str


@dataclass
class BulkCategoryInput:
    """Category record for bulk_update_categories()."""

    code: str
    name: str
    english_name: str
    hidden: bool = False
    tags: List[str] = field(default_factory=list)
    attributes: AttributesInput = field(default_factory=AttributesInput)
    parent_categories: List[str] = field(default_factory=list)
    portion_size_methods: List[PortionSizeMethodInput] = field(default_factory=list)
    version: Optional[str] = None


@dataclass
class BulkFoodInput:
    """Food record for bulk_update_foods()."""

    code: str
    name: str
    english_name: str
    alt_names: Dict[str, List[str]] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    attributes: AttributesInput = field(default_factory=AttributesInput)
    parent_categories: List[str] = field(default_factory=list)
    nutrient_records: List[NutrientRecordInput] = field(default_factory=list)
    portion_size_methods: List[PortionSizeMethodInput] = field(default_factory=list)
    associated_foods: List[AssociatedFoodInput] = field(default_factory=list)
    brand_names: List[str] = field(default_factory=list)
    version: Optional[str] = None


@dataclass
class LocaleInput:
    """Locale record for bulk_update_locales()."""

    code: str
    english_name: str
    local_name: str
    respondent_language_id: str
    admin_language_id: str
    country_flag_code: str
    text_direction: str = "ltr"
    food_index_language_backend_id: str = "en"
    food_index_enabled: bool = True

    def to_row(self) -> Dict[str, Any]:
        return {
            "code": self.code,
            "english_name": self.english_name,
            "local_name": self.local_name,
            "respondent_language_id": self.respondent_language_id,
            "admin_language_id": self.admin_language_id,
            "country_flag_code": self.country_flag_code,
            "text_direction": self.text_direction,
            "food_index_enabled": self.food_index_enabled,
            "food_index_language_backend_id": self.food_index_language_backend_id,
        }


@dataclass
class BulkUpdateResult:
    """Outcome of one bulk update call.

    Attributes:
        locale_id: Locale the records belong to (None for locales themselves)
        affected_codes: Codes inserted or overwritten, sorted
        skipped_codes: Codes left untouched by the skip policy, sorted
    """

    locale_id: Optional[str]
    affected_codes: List[str] = field(default_factory=list)
    skipped_codes: List[str] = field(default_factory=list)

    @property
    def affected_count(self) -> int:
        return len(self.affected_codes)
