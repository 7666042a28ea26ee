"""
Package Exporter - stream a locale's food graph into a package writer.

For each exported locale the exporter runs an ordered primary query (foods
or categories, ordered by code) with a server-side cursor, and for every
batch of primary rows issues one secondary query per child kind keyed by the
batch's row ids:

    foods       parent category codes, nutrient table codes, portion size
                methods, associated foods, brand names
    categories  parent category codes, portion size methods

Secondary rows are folded into {row id: [...]} maps before the batch is
merged, so memory is bounded by one batch and its fan-out, and the merged
output does not depend on the batch size.

Portion size methods reference global image assets (as served sets, guide
images, drinkware sets, and the image maps behind the last two). Their codes
are collected while foods and categories stream past and exported in a
second pass, together with the set of image files the package needs.

Progress is a single number in [0, 1]: every included stage owns a weight
(PROGRESS_WEIGHTS), per-locale stages are averaged across locales, and the
weighted sum is normalized by the total weight of the included stages.
"""

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    Iterator,
    List,
    Sequence,
    Set,
    TypeVar,
)

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select
from sqlalchemy.orm import Session, aliased

from src.models.category import (
    Category,
    CategoryAttributes,
    CategoryCategory,
    CategoryPortionSizeMethod,
)
from src.models.food import (
    AssociatedFood,
    Brand,
    Food,
    FoodAttributes,
    FoodCategory,
    FoodNutrient,
    FoodPortionSizeMethod,
)
from src.models.image import (
    AsServedImage,
    AsServedSet,
    DrinkwareScale,
    DrinkwareScaleV2,
    DrinkwareSet,
    DrinkwareVolumeSample,
    GuideImage,
    GuideImageObject,
    ImageMap,
    ImageMapObject,
    SourceImage,
    SourceImageKeyword,
)
from src.models.nutrient_table import NutrientTableRecord
from src.services.exceptions import PackageExportError
from src.services.locale_service import get_locale
from src.services.logging_utils import get_service_logger, log_operation
from src.services.package_schemas import (
    PackageAsServedSet,
    PackageAssociatedFood,
    PackageCategory,
    PackageDrinkwareSet,
    PackageExportOptions,
    PackageFood,
    PackageGuideImage,
    PackageImageMap,
    PortionSizeMethod,
)
from src.services.package_writers import PackageWriter
from src.services.type_conversions import (
    package_attributes,
    package_locale,
    package_portion_size,
)
from src.utils.constants import (
    DEFAULT_EXPORT_BATCH_SIZE,
    EXPORT_INCLUDE_OPTIONS,
    IMAGE_PROGRESS_INTERVAL,
    INCLUDE_CATEGORIES,
    INCLUDE_FOODS,
    INCLUDE_LOCALES,
    INCLUDE_PORTION_SIZE_IMAGES,
    INCLUDE_PORTION_SIZE_METHODS,
    LOCALE_STAGES,
    PACKAGE_FORMAT_VERSION,
    PACKAGE_JSON_FILE,
    PROGRESS_WEIGHTS,
)

logger = get_service_logger(__name__)

T = TypeVar("T")

ProgressCallback = Callable[[float], None]
CopyImageCallback = Callable[[str], None]


# ============================================================================
# Batching helpers
# ============================================================================


def batch_stream(iterable: Iterable[T], size: int) -> Iterator[List[T]]:
    """
    Split a stream into lists of at most `size` items.

    Raises:
        ValueError: size is less than 1
    """
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")

    batch: List[T] = []
    for item in iterable:
        batch.append(item)
        if len(batch) == size:
            yield batch
            batch = []

    if batch:
        yield batch


def batch_stream_grouped(
    iterable: Iterable[T], key: Callable[[T], Hashable], size: int
) -> Iterator[Dict[Hashable, List[T]]]:
    """
    Group a key-ordered stream and yield at most `size` groups at a time.

    A group is never split across two batches, so the input must deliver the
    rows of one key consecutively.

    Raises:
        ValueError: size is less than 1
    """
    if size < 1:
        raise ValueError(f"Batch size must be at least 1, got {size}")

    batch: Dict[Hashable, List[T]] = {}
    for item in iterable:
        item_key = key(item)
        if item_key not in batch and len(batch) == size:
            yield batch
            batch = {}
        batch.setdefault(item_key, []).append(item)

    if batch:
        yield batch


def _group_by(rows: Iterable[Any], key: Callable[[Any], Hashable], value=lambda row: row):
    grouped: Dict[Hashable, List[Any]] = defaultdict(list)
    for row in rows:
        grouped[key(row)].append(value(row))
    return grouped


def _validation_details(error: PydanticValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}" for item in error.errors()
    )


# ============================================================================
# Exporter
# ============================================================================


class PackageExporter:
    """
    Drive one export job: query, merge, validate and hand records to a writer.

    Args:
        session: Database session the export reads through
        writer: Format-specific package writer
        options: Locales and stages to export
        output_path: Package directory (receives package.json)
        update_progress: Called with the overall progress after every batch
        copy_image: Called with the store-relative path of every image file
            the package references
        batch_size: Primary rows fetched per batch
    """

    def __init__(
        self,
        session: Session,
        writer: PackageWriter,
        options: PackageExportOptions,
        output_path,
        update_progress: ProgressCallback,
        copy_image: CopyImageCallback,
        batch_size: int = DEFAULT_EXPORT_BATCH_SIZE,
    ):
        if batch_size < 1:
            raise ValueError(f"Batch size must be at least 1, got {batch_size}")

        self.session = session
        self.writer = writer
        self.options = options
        self.output_path = Path(output_path)
        self.update_progress_callback = update_progress
        self.copy_image = copy_image
        self.batch_size = batch_size

        self.as_served_set_ids: Set[str] = set()
        self.guide_image_ids: Set[str] = set()
        self.drinkware_set_ids: Set[str] = set()
        self.image_map_ids: Set[str] = set()
        self.image_file_paths: Set[str] = set()

        # {locale: {stage: progress}} and {stage: progress}
        self.progress: Dict[str, Dict[str, float]] = defaultdict(dict)
        self.global_progress: Dict[str, float] = {}
        self._reported_progress = 0.0

    # ------------------------------------------------------------------
    # Progress
    # ------------------------------------------------------------------

    def include(self, option: str) -> bool:
        return option in self.options.include

    def get_overall_progress(self) -> float:
        included = [option for option in EXPORT_INCLUDE_OPTIONS if self.include(option)]
        if not self.options.locales or not included:
            return 1.0

        total_weight = sum(PROGRESS_WEIGHTS[option] for option in included)
        locale_count = len(self.options.locales)
        overall = 0.0

        for option in included:
            if option in LOCALE_STAGES:
                stage_total = sum(
                    min(1.0, max(0.0, self.progress[locale_id].get(option, 0.0)))
                    for locale_id in self.options.locales
                )
                stage_progress = stage_total / locale_count
            else:
                stage_progress = min(1.0, max(0.0, self.global_progress.get(option, 0.0)))
            overall += PROGRESS_WEIGHTS[option] * stage_progress

        return min(1.0, max(0.0, overall / total_weight))

    def _report(self, progress: float) -> None:
        self._reported_progress = max(self._reported_progress, progress)
        self.update_progress_callback(self._reported_progress)

    def update_progress(self, locale_id: str, option: str, progress: float) -> None:
        self.progress[locale_id][option] = progress
        self._report(self.get_overall_progress())

    def update_global_progress(self, option: str, progress: float) -> None:
        self.global_progress[option] = progress
        self._report(self.get_overall_progress())

    # ------------------------------------------------------------------
    # Asset collection
    # ------------------------------------------------------------------

    def _collect_assets(self, portion_size: Sequence[PortionSizeMethod]) -> None:
        for psm in portion_size:
            if psm.method == "as-served":
                self.as_served_set_ids.add(psm.serving_image_set)
                if psm.leftovers_image_set:
                    self.as_served_set_ids.add(psm.leftovers_image_set)
            elif psm.method == "guide-image":
                self.guide_image_ids.add(psm.guide_image_id)
            elif psm.method == "drink-scale":
                self.drinkware_set_ids.add(psm.drinkware_id)

    # ------------------------------------------------------------------
    # Locale stages
    # ------------------------------------------------------------------

    def process_locale(self, locale_id: str) -> None:
        locale = get_locale(locale_id, self.session)
        self.writer.write_locale(package_locale(locale))
        self.update_progress(locale_id, INCLUDE_LOCALES, 1.0)

    def _parent_category_codes(self, link_model, child_column, ids: List[int]) -> Dict[int, List[str]]:
        rows = self.session.execute(
            select(getattr(link_model, child_column), Category.code)
            .join(Category, Category.id == link_model.category_id)
            .where(getattr(link_model, child_column).in_(ids))
            .order_by(Category.code)
        ).all()
        return _group_by(rows, lambda row: row[0], lambda row: row[1])

    def _portion_size_methods(self, model, parent_column, ids: List[int]) -> Dict[int, List]:
        parent = getattr(model, parent_column)
        rows = self.session.scalars(
            select(model).where(parent.in_(ids)).order_by(parent, model.order_by)
        ).all()
        return _group_by(rows, lambda row: getattr(row, parent_column), package_portion_size)

    def process_foods(self, locale_id: str) -> None:
        food_count = self.session.scalar(
            select(func.count()).select_from(Food).where(Food.locale_id == locale_id)
        )
        log_operation(logger, "export_foods", "started", locale_id=locale_id, count=food_count)

        if food_count == 0:
            self.update_progress(locale_id, INCLUDE_FOODS, 1.0)
            return

        food_rows = self.session.execute(
            select(
                Food.id,
                Food.code,
                Food.name,
                Food.english_name,
                Food.alt_names,
                Food.tags,
                Food.version,
                Food.thumbnail_path,
                FoodAttributes.ready_meal_option,
                FoodAttributes.same_as_before_option,
                FoodAttributes.reasonable_amount,
                FoodAttributes.use_in_recipes,
            )
            .outerjoin(FoodAttributes, FoodAttributes.food_id == Food.id)
            .where(Food.locale_id == locale_id)
            .order_by(Food.code)
            .execution_options(yield_per=self.batch_size)
        )

        processed = 0
        for batch in batch_stream(food_rows, self.batch_size):
            ids = [row.id for row in batch]

            parent_categories = self._parent_category_codes(FoodCategory, "food_id", ids)

            nutrient_rows = self.session.execute(
                select(
                    FoodNutrient.food_id,
                    NutrientTableRecord.nutrient_table_code,
                    NutrientTableRecord.record_id,
                )
                .join(NutrientTableRecord, NutrientTableRecord.id == FoodNutrient.nutrient_table_record_id)
                .where(FoodNutrient.food_id.in_(ids))
                .order_by(FoodNutrient.food_id, NutrientTableRecord.nutrient_table_code)
            ).all()
            nutrient_codes: Dict[int, Dict[str, str]] = defaultdict(dict)
            for food_id, table_code, record_id in nutrient_rows:
                nutrient_codes[food_id][table_code] = record_id

            portion_sizes = self._portion_size_methods(FoodPortionSizeMethod, "food_id", ids)

            associated_rows = self.session.scalars(
                select(AssociatedFood)
                .where(AssociatedFood.food_id.in_(ids))
                .order_by(AssociatedFood.food_id, AssociatedFood.order_by)
            ).all()
            associated_foods = _group_by(
                associated_rows,
                lambda row: row.food_id,
                lambda row: PackageAssociatedFood(
                    food_code=row.associated_food_code,
                    category_code=row.associated_category_code,
                    prompt_text=row.text or {},
                    link_as_main=row.link_as_main,
                    generic_name=row.generic_name or {},
                    multiple=row.multiple,
                ),
            )

            brand_rows = self.session.execute(
                select(Brand.food_id, Brand.name).where(Brand.food_id.in_(ids)).order_by(Brand.id)
            ).all()
            brand_names = _group_by(brand_rows, lambda row: row[0], lambda row: row[1])

            for row in batch:
                try:
                    food = PackageFood(
                        code=row.code,
                        version=row.version,
                        name=row.name or row.english_name,
                        english_name=row.english_name,
                        alternative_names=row.alt_names or {},
                        tags=row.tags or [],
                        attributes=package_attributes(row),
                        parent_categories=parent_categories.get(row.id, []),
                        nutrient_table_codes=nutrient_codes.get(row.id, {}),
                        portion_size=portion_sizes.get(row.id, []),
                        associated_foods=associated_foods.get(row.id, []),
                        brand_names=brand_names.get(row.id, []),
                        thumbnail_path=row.thumbnail_path,
                    )
                except PydanticValidationError as e:
                    raise PackageExportError("food", row.code, _validation_details(e), locale_id) from e

                self.writer.write_food(locale_id, food)
                self._collect_assets(food.portion_size)

            processed += len(batch)
            log_operation(
                logger,
                "export_foods",
                "batch",
                level=logging.DEBUG,
                locale_id=locale_id,
                processed=processed,
            )
            self.update_progress(locale_id, INCLUDE_FOODS, processed / food_count)

        log_operation(logger, "export_foods", "success", locale_id=locale_id, count=processed)

    def process_categories(self, locale_id: str) -> None:
        category_count = self.session.scalar(
            select(func.count()).select_from(Category).where(Category.locale_id == locale_id)
        )
        log_operation(
            logger, "export_categories", "started", locale_id=locale_id, count=category_count
        )

        if category_count == 0:
            self.update_progress(locale_id, INCLUDE_CATEGORIES, 1.0)
            return

        category_rows = self.session.execute(
            select(
                Category.id,
                Category.code,
                Category.name,
                Category.english_name,
                Category.hidden,
                Category.tags,
                Category.version,
                CategoryAttributes.ready_meal_option,
                CategoryAttributes.same_as_before_option,
                CategoryAttributes.reasonable_amount,
                CategoryAttributes.use_in_recipes,
            )
            .outerjoin(CategoryAttributes, CategoryAttributes.category_id == Category.id)
            .where(Category.locale_id == locale_id)
            .order_by(Category.code)
            .execution_options(yield_per=self.batch_size)
        )

        processed = 0
        for batch in batch_stream(category_rows, self.batch_size):
            ids = [row.id for row in batch]

            parent_categories = self._parent_category_codes(CategoryCategory, "sub_category_id", ids)
            portion_sizes = self._portion_size_methods(CategoryPortionSizeMethod, "category_id", ids)

            for row in batch:
                try:
                    category = PackageCategory(
                        code=row.code,
                        version=row.version,
                        name=row.name or row.english_name,
                        english_name=row.english_name,
                        hidden=row.hidden,
                        tags=row.tags or [],
                        attributes=package_attributes(row),
                        parent_categories=parent_categories.get(row.id, []),
                        portion_size=portion_sizes.get(row.id, []),
                    )
                except PydanticValidationError as e:
                    raise PackageExportError(
                        "category", row.code, _validation_details(e), locale_id
                    ) from e

                self.writer.write_category(locale_id, category)
                self._collect_assets(category.portion_size)

            processed += len(batch)
            log_operation(
                logger,
                "export_categories",
                "batch",
                level=logging.DEBUG,
                locale_id=locale_id,
                processed=processed,
            )
            self.update_progress(locale_id, INCLUDE_CATEGORIES, processed / category_count)

        log_operation(logger, "export_categories", "success", locale_id=locale_id, count=processed)

    # ------------------------------------------------------------------
    # Portion size assets
    # ------------------------------------------------------------------

    def process_as_served_sets(self) -> None:
        if not self.as_served_set_ids:
            return

        selection_image = aliased(SourceImage)
        set_image = aliased(SourceImage)

        rows = self.session.execute(
            select(
                AsServedSet.code,
                AsServedSet.description,
                AsServedSet.label,
                selection_image.path.label("selection_image_path"),
                AsServedImage.weight,
                AsServedImage.label.label("image_label"),
                set_image.id.label("source_image_id"),
                set_image.path.label("image_path"),
            )
            .join(AsServedImage, AsServedImage.as_served_set_id == AsServedSet.id)
            .join(selection_image, selection_image.id == AsServedSet.selection_image_id)
            .join(set_image, set_image.id == AsServedImage.source_image_id)
            .where(AsServedSet.code.in_(sorted(self.as_served_set_ids)))
            .order_by(func.lower(AsServedSet.code), AsServedSet.code, AsServedImage.weight)
            .execution_options(yield_per=self.batch_size)
        )

        for batch in batch_stream_grouped(rows, lambda row: row.code, self.batch_size):
            source_image_ids = sorted(
                {row.source_image_id for set_rows in batch.values() for row in set_rows}
            )
            keyword_rows = self.session.execute(
                select(SourceImageKeyword.source_image_id, SourceImageKeyword.keyword)
                .where(SourceImageKeyword.source_image_id.in_(source_image_ids))
                .order_by(SourceImageKeyword.id)
            ).all()
            keywords = _group_by(keyword_rows, lambda row: row[0], lambda row: row[1])

            for code, set_rows in batch.items():
                first = set_rows[0]
                try:
                    as_served_set = PackageAsServedSet(
                        id=code,
                        description=first.description,
                        selection_image_path=first.selection_image_path,
                        label=first.label,
                        images=[
                            {
                                "image_path": row.image_path,
                                "image_keywords": keywords.get(row.source_image_id, []),
                                "weight": row.weight,
                                "label": row.image_label,
                            }
                            for row in set_rows
                        ],
                    )
                except PydanticValidationError as e:
                    raise PackageExportError("as served set", code, _validation_details(e)) from e

                self.writer.write_as_served_set(as_served_set)
                self.image_file_paths.add(as_served_set.selection_image_path)
                for image in as_served_set.images:
                    self.image_file_paths.add(image.image_path)

        log_operation(logger, "export_as_served_sets", "success", count=len(self.as_served_set_ids))

    def process_guide_images(self) -> None:
        if not self.guide_image_ids:
            return

        rows = self.session.execute(
            select(
                GuideImage.id,
                GuideImage.code,
                GuideImage.description,
                GuideImage.image_map_code,
                GuideImage.label,
            )
            .where(GuideImage.code.in_(sorted(self.guide_image_ids)))
            .order_by(func.lower(GuideImage.code), GuideImage.code)
            .execution_options(yield_per=self.batch_size)
        )

        for batch in batch_stream(rows, self.batch_size):
            object_rows = self.session.execute(
                select(
                    GuideImageObject.guide_image_id,
                    GuideImageObject.image_map_object_id,
                    GuideImageObject.weight,
                )
                .where(GuideImageObject.guide_image_id.in_([row.id for row in batch]))
                .order_by(GuideImageObject.guide_image_id, GuideImageObject.image_map_object_id)
            ).all()
            objects = _group_by(object_rows, lambda row: row.guide_image_id)

            for row in batch:
                try:
                    guide_image = PackageGuideImage(
                        id=row.code,
                        description=row.description,
                        image_map_id=row.image_map_code,
                        object_weights={
                            obj.image_map_object_id: obj.weight for obj in objects.get(row.id, [])
                        },
                        label=row.label,
                    )
                except PydanticValidationError as e:
                    raise PackageExportError("guide image", row.code, _validation_details(e)) from e

                self.writer.write_guide_image(guide_image)
                self.image_map_ids.add(row.image_map_code)

        log_operation(logger, "export_guide_images", "success", count=len(self.guide_image_ids))

    def process_drinkware_sets(self) -> None:
        if not self.drinkware_set_ids:
            return

        rows = self.session.execute(
            select(
                DrinkwareSet.id,
                DrinkwareSet.code,
                DrinkwareSet.description,
                DrinkwareSet.image_map_code,
                DrinkwareSet.label,
            )
            .where(DrinkwareSet.code.in_(sorted(self.drinkware_set_ids)))
            .order_by(func.lower(DrinkwareSet.code), DrinkwareSet.code)
            .execution_options(yield_per=self.batch_size)
        )

        for batch in batch_stream(rows, self.batch_size):
            set_ids = [row.id for row in batch]

            v1_scales = self.session.scalars(
                select(DrinkwareScale)
                .where(DrinkwareScale.drinkware_set_id.in_(set_ids))
                .order_by(DrinkwareScale.drinkware_set_id, DrinkwareScale.choice_id)
            ).all()
            sample_rows = self.session.execute(
                select(DrinkwareVolumeSample.drinkware_scale_id, DrinkwareVolumeSample.volume)
                .where(DrinkwareVolumeSample.drinkware_scale_id.in_([s.id for s in v1_scales]))
                .order_by(DrinkwareVolumeSample.drinkware_scale_id, DrinkwareVolumeSample.fill)
            ).all()
            volume_samples = _group_by(sample_rows, lambda row: row[0], lambda row: row[1])
            v1_by_set = _group_by(v1_scales, lambda scale: scale.drinkware_set_id)

            v2_rows = self.session.execute(
                select(DrinkwareScaleV2, SourceImage.path)
                .join(SourceImage, SourceImage.id == DrinkwareScaleV2.base_image_id)
                .where(DrinkwareScaleV2.drinkware_set_id.in_(set_ids))
                .order_by(DrinkwareScaleV2.drinkware_set_id, DrinkwareScaleV2.choice_id)
            ).all()
            v2_by_set = _group_by(v2_rows, lambda row: row[0].drinkware_set_id)

            for row in batch:
                scales: Dict[int, Dict[str, Any]] = {}
                for scale in v1_by_set.get(row.id, []):
                    scales[scale.choice_id] = {
                        "version": 1,
                        "label": scale.label or "",
                        "width": scale.width,
                        "height": scale.height,
                        "empty_level": scale.empty_level,
                        "full_level": scale.full_level,
                        "base_image_path": scale.base_image_path,
                        "overlay_image_path": scale.overlay_image_path,
                        "volume_samples": volume_samples.get(scale.id, []),
                    }
                for scale, base_image_path in v2_by_set.get(row.id, []):
                    scales[scale.choice_id] = {
                        "version": 2,
                        "label": scale.label or {},
                        "base_image_path": base_image_path,
                        "outline_coordinates": scale.outline_coordinates or [],
                        "volume_samples": scale.volume_samples or [],
                        "volume_method": scale.volume_method,
                    }

                try:
                    drinkware_set = PackageDrinkwareSet(
                        id=row.code,
                        description=row.description,
                        selection_image_map_id=row.image_map_code,
                        scales=scales,
                        label=row.label,
                    )
                except PydanticValidationError as e:
                    raise PackageExportError("drinkware set", row.code, _validation_details(e)) from e

                self.writer.write_drinkware_set(drinkware_set)
                self.image_map_ids.add(row.image_map_code)
                for scale in drinkware_set.scales.values():
                    self.image_file_paths.add(scale.base_image_path)
                    if scale.version == 1:
                        self.image_file_paths.add(scale.overlay_image_path)

        log_operation(
            logger, "export_drinkware_sets", "success", count=len(self.drinkware_set_ids)
        )

    def process_image_maps(self) -> None:
        if not self.image_map_ids:
            return

        rows = self.session.execute(
            select(ImageMap.id, ImageMap.code, ImageMap.description, SourceImage.path)
            .join(SourceImage, SourceImage.id == ImageMap.base_image_id)
            .where(ImageMap.code.in_(sorted(self.image_map_ids)))
            .order_by(func.lower(ImageMap.code), ImageMap.code)
            .execution_options(yield_per=self.batch_size)
        )

        for batch in batch_stream(rows, self.batch_size):
            object_rows = self.session.scalars(
                select(ImageMapObject)
                .where(ImageMapObject.image_map_id.in_([row.id for row in batch]))
                .order_by(ImageMapObject.image_map_id, ImageMapObject.object_id)
            ).all()
            objects = _group_by(object_rows, lambda obj: obj.image_map_id)

            for row in batch:
                try:
                    image_map = PackageImageMap(
                        id=row.code,
                        description=row.description,
                        base_image_path=row.path,
                        objects={
                            obj.object_id: {
                                "description": obj.description,
                                "navigation_index": obj.navigation_index,
                                "outline_coordinates": obj.outline_coordinates or [],
                            }
                            for obj in objects.get(row.id, [])
                        },
                    )
                except PydanticValidationError as e:
                    raise PackageExportError("image map", row.code, _validation_details(e)) from e

                self.writer.write_image_map(image_map)
                self.image_file_paths.add(image_map.base_image_path)

        log_operation(logger, "export_image_maps", "success", count=len(self.image_map_ids))

    def _process_portion_size_assets(self) -> None:
        total = len(self.as_served_set_ids) + len(self.guide_image_ids) + len(self.drinkware_set_ids)
        processed = 0

        for ids, process in (
            (self.as_served_set_ids, self.process_as_served_sets),
            (self.guide_image_ids, self.process_guide_images),
            (self.drinkware_set_ids, self.process_drinkware_sets),
        ):
            if ids:
                process()
                processed += len(ids)
                self.update_global_progress(INCLUDE_PORTION_SIZE_METHODS, processed / total)

        # Image maps are referenced by the guide images and drinkware sets above
        self.process_image_maps()
        self.update_global_progress(INCLUDE_PORTION_SIZE_METHODS, 1.0)

    def _copy_images(self) -> None:
        paths = sorted(self.image_file_paths)
        total = len(paths)
        log_operation(logger, "copy_images", "started", count=total)

        for copied, path in enumerate(paths, start=1):
            self.copy_image(path)
            if copied % IMAGE_PROGRESS_INTERVAL == 0 or copied == total:
                self.update_global_progress(INCLUDE_PORTION_SIZE_IMAGES, copied / total)

    def _write_package_json(self) -> None:
        manifest = {"version": PACKAGE_FORMAT_VERSION, "format": self.options.format}
        with open(self.output_path / PACKAGE_JSON_FILE, "w", encoding="utf-8") as f:
            json.dump(manifest, f, indent=2)

    # ------------------------------------------------------------------
    # Job
    # ------------------------------------------------------------------

    def export(self) -> None:
        """
        Run every included stage, finish the writer and write package.json.

        Stage order: per locale (locale, foods, categories), then portion
        size assets, then image files once the package members are complete.
        """
        log_operation(
            logger,
            "export",
            "started",
            locales=self.options.locales,
            include=list(self.options.include),
            package_format=self.options.format,
        )

        for locale_id in self.options.locales:
            if self.include(INCLUDE_LOCALES):
                self.process_locale(locale_id)
            if self.include(INCLUDE_FOODS):
                self.process_foods(locale_id)
            if self.include(INCLUDE_CATEGORIES):
                self.process_categories(locale_id)

        if self.include(INCLUDE_PORTION_SIZE_METHODS):
            self._process_portion_size_assets()

        self.writer.finish()
        self._write_package_json()

        if self.include(INCLUDE_PORTION_SIZE_IMAGES):
            if self.image_file_paths:
                self._copy_images()
            else:
                self.update_global_progress(INCLUDE_PORTION_SIZE_IMAGES, 1.0)

        self._report(1.0)
        log_operation(
            logger,
            "export",
            "success",
            locales=self.options.locales,
            images=len(self.image_file_paths),
        )
