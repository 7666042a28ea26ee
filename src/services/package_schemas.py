"""
Package schemas - pydantic models for every member of a food package.

Package JSON uses camelCase keys; the models use snake_case attributes with a
camelCase alias generator, so records are read with model_validate() and
written with to_package().

The portion size method is a tagged union discriminated by "method" and the
drinkware scale a tagged union discriminated by "version". Validation errors
of a tagged union report the tag in their location (e.g.
"portionSize.0.as-served.servingImageSet"), which keeps error messages
readable for packages with many methods.

Usage:
    from src.services.package_schemas import FOODS_FILE_ADAPTER, PackageFood

    foods = FOODS_FILE_ADAPTER.validate_python(json.load(f))
    for locale_id, records in foods.items():
        ...
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from src.utils.constants import (
    AS_SERVED_SETS_FILE,
    CATEGORIES_FILE,
    CONFLICT_ABORT,
    DRINKWARE_SETS_FILE,
    FOODS_FILE,
    GUIDE_IMAGES_FILE,
    IMAGE_MAPS_FILE,
    LOCALES_FILE,
)


class PackageModel(BaseModel):
    """Base for package records: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_package(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys; unset optional fields are omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Manifest and locales
# ============================================================================


class PackageManifest(PackageModel):
    """Contents of package.json."""

    version: str
    format: Literal["json", "xlsx"]


class PackageLocale(PackageModel):
    id: str
    english_name: str
    local_name: str
    respondent_language: str
    admin_language: str
    flag_code: str
    text_direction: Literal["ltr", "rtl"] = "ltr"
    food_index_language_backend_id: str = "en"
    food_index_enabled: Optional[bool] = None


# ============================================================================
# Portion size methods
# ============================================================================


PORTION_SIZE_METHODS = [
    "as-served",
    "guide-image",
    "drink-scale",
    "standard-portion",
    "cereal",
    "milk-on-cereal",
    "pizza",
    "pizza-v2",
    "milk-in-a-hot-drink",
    "parent-food-portion",
    "direct-weight",
    "unknown",
]

# Keys shared by every variant; everything else is a variant parameter
PORTION_SIZE_BASE_KEYS = ["method", "description", "useForRecipes", "conversionFactor"]


class PortionSizeMethodBase(PackageModel):
    description: str
    use_for_recipes: bool = False
    conversion_factor: float = 1.0


class AsServedPsm(PortionSizeMethodBase):
    method: Literal["as-served"]
    serving_image_set: str
    leftovers_image_set: Optional[str] = None
    multiple: Optional[bool] = None
    labels: Optional[bool] = None


class GuideImagePsm(PortionSizeMethodBase):
    method: Literal["guide-image"]
    guide_image_id: str
    labels: Optional[bool] = None


class DrinkScalePsm(PortionSizeMethodBase):
    method: Literal["drink-scale"]
    drinkware_id: str
    initial_fill_level: float
    skip_fill_level: bool
    multiple: Optional[bool] = None
    labels: Optional[bool] = None


class StandardUnit(PackageModel):
    name: str
    weight: float
    omit_food_description: bool
    inline_estimate_in: Optional[str] = None
    inline_how_many: Optional[str] = None


class StandardPortionPsm(PortionSizeMethodBase):
    method: Literal["standard-portion"]
    units: List[StandardUnit]


class CerealPsm(PortionSizeMethodBase):
    method: Literal["cereal"]
    type: Literal["hoop", "flake", "rkris"]
    labels: Optional[bool] = None


class MilkOnCerealPsm(PortionSizeMethodBase):
    method: Literal["milk-on-cereal"]
    labels: Optional[bool] = None


class PizzaPsm(PortionSizeMethodBase):
    method: Literal["pizza"]
    labels: Optional[bool] = None


class PizzaV2Psm(PortionSizeMethodBase):
    method: Literal["pizza-v2"]
    labels: Optional[bool] = None


class LocaleOption(PackageModel):
    label: str
    value: float
    short_label: Optional[str] = None


class MilkInHotDrinkPsm(PortionSizeMethodBase):
    method: Literal["milk-in-a-hot-drink"]
    options: Dict[str, List[LocaleOption]]


class ParentFoodPortionPsm(PortionSizeMethodBase):
    method: Literal["parent-food-portion"]
    # {category code: {language: options}}
    options: Dict[str, Dict[str, List[LocaleOption]]]


class DirectWeightPsm(PortionSizeMethodBase):
    method: Literal["direct-weight"]


class UnknownPsm(PortionSizeMethodBase):
    method: Literal["unknown"]


PortionSizeMethod = Annotated[
    Union[
        AsServedPsm,
        GuideImagePsm,
        DrinkScalePsm,
        StandardPortionPsm,
        CerealPsm,
        MilkOnCerealPsm,
        PizzaPsm,
        PizzaV2Psm,
        MilkInHotDrinkPsm,
        ParentFoodPortionPsm,
        DirectWeightPsm,
        UnknownPsm,
    ],
    Field(discriminator="method"),
]

PORTION_SIZE_METHOD_ADAPTER = TypeAdapter(PortionSizeMethod)


# ============================================================================
# Foods and categories
# ============================================================================


class InheritableAttributes(PackageModel):
    ready_meal_option: Optional[bool] = None
    same_as_before_option: Optional[bool] = None
    reasonable_amount: Optional[int] = None
    use_in_recipes: Optional[Literal[0, 1, 2]] = None


class PackageAssociatedFood(PackageModel):
    food_code: Optional[str] = None
    category_code: Optional[str] = None
    prompt_text: Dict[str, str]
    link_as_main: bool
    generic_name: Dict[str, str]
    multiple: Optional[bool] = None


class PackageFood(PackageModel):
    code: str
    version: Optional[str] = None
    name: str
    english_name: str
    alternative_names: Dict[str, List[str]] = Field(default_factory=dict)
    tags: List[str] = Field(default_factory=list)
    attributes: InheritableAttributes
    parent_categories: List[str]
    # {nutrient table code: record id}
    nutrient_table_codes: Dict[str, str]
    portion_size: List[PortionSizeMethod]
    associated_foods: List[PackageAssociatedFood]
    brand_names: List[str]
    thumbnail_path: Optional[str] = None


class PackageCategory(PackageModel):
    code: str
    version: Optional[str] = None
    name: str
    english_name: str
    hidden: bool
    tags: List[str] = Field(default_factory=list)
    attributes: InheritableAttributes
    parent_categories: List[str]
    portion_size: List[PortionSizeMethod]


# ============================================================================
# Portion size image assets
# ============================================================================


class PackageAsServedImage(PackageModel):
    image_path: str
    image_keywords: List[str] = Field(default_factory=list)
    weight: float
    label: Optional[Dict[str, str]] = None


class PackageAsServedSet(PackageModel):
    id: str
    description: str
    selection_image_path: str
    label: Optional[Dict[str, str]] = None
    images: List[PackageAsServedImage]


class PackageImageMapObject(PackageModel):
    description: str
    navigation_index: int
    outline_coordinates: List[float]


class PackageImageMap(PackageModel):
    id: str
    description: str
    base_image_path: str
    objects: Dict[int, PackageImageMapObject]


class PackageGuideImage(PackageModel):
    id: str
    description: str
    image_map_id: str
    object_weights: Dict[int, float]
    label: Optional[Dict[str, str]] = None


class DrinkScaleV1(PackageModel):
    version: Literal[1]
    label: str
    width: int
    height: int
    empty_level: int
    full_level: int
    base_image_path: str
    overlay_image_path: str
    volume_samples: List[float]


class DrinkScaleV2(PackageModel):
    version: Literal[2]
    label: Dict[str, str]
    base_image_path: str
    outline_coordinates: List[float]
    volume_samples: List[float]
    volume_method: Literal["lookUpTable", "cylindrical"]


DrinkScale = Annotated[Union[DrinkScaleV1, DrinkScaleV2], Field(discriminator="version")]


class PackageDrinkwareSet(PackageModel):
    id: str
    description: str
    selection_image_map_id: str
    scales: Dict[int, DrinkScale]
    label: Optional[Dict[str, str]] = None


# ============================================================================
# File schemas
# ============================================================================

LOCALES_FILE_ADAPTER = TypeAdapter(List[PackageLocale])
FOODS_FILE_ADAPTER = TypeAdapter(Dict[str, List[PackageFood]])
CATEGORIES_FILE_ADAPTER = TypeAdapter(Dict[str, List[PackageCategory]])
AS_SERVED_SETS_FILE_ADAPTER = TypeAdapter(List[PackageAsServedSet])
IMAGE_MAPS_FILE_ADAPTER = TypeAdapter(List[PackageImageMap])
GUIDE_IMAGES_FILE_ADAPTER = TypeAdapter(List[PackageGuideImage])
DRINKWARE_SETS_FILE_ADAPTER = TypeAdapter(List[PackageDrinkwareSet])

# Member file name -> adapter, in verification order
PACKAGE_FILE_ADAPTERS: Dict[str, TypeAdapter] = {
    LOCALES_FILE: LOCALES_FILE_ADAPTER,
    FOODS_FILE: FOODS_FILE_ADAPTER,
    CATEGORIES_FILE: CATEGORIES_FILE_ADAPTER,
    AS_SERVED_SETS_FILE: AS_SERVED_SETS_FILE_ADAPTER,
    IMAGE_MAPS_FILE: IMAGE_MAPS_FILE_ADAPTER,
    GUIDE_IMAGES_FILE: GUIDE_IMAGES_FILE_ADAPTER,
    DRINKWARE_SETS_FILE: DRINKWARE_SETS_FILE_ADAPTER,
}

# Members keyed by locale whose error paths are remapped to entity codes
LOCALE_KEYED_FILES = {FOODS_FILE, CATEGORIES_FILE}


# ============================================================================
# Job options
# ============================================================================

ConflictStrategy = Literal["abort", "overwrite", "skip"]
ExportIncludeOption = Literal[
    "foods", "categories", "locales", "portionSizeMethods", "portionSizeImages"
]
ImportIncludeOption = Literal["locales", "foods", "categories"]


class PackageExportOptions(PackageModel):
    """Export job parameters."""

    locales: List[str]
    include: List[ExportIncludeOption]
    format: Literal["json", "xlsx"] = "json"


class ConflictStrategies(PackageModel):
    locales: ConflictStrategy = CONFLICT_ABORT
    foods: ConflictStrategy = CONFLICT_ABORT
    categories: ConflictStrategy = CONFLICT_ABORT


class PackageImportOptions(PackageModel):
    """Import job parameters. Filters restrict the import to the listed codes."""

    include: List[ImportIncludeOption]
    locale_filter: Optional[List[str]] = None
    food_filter: Optional[List[str]] = None
    category_filter: Optional[List[str]] = None
    conflict_strategies: ConflictStrategies = Field(default_factory=ConflictStrategies)
