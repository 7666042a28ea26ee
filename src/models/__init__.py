"""
Database models package.

This package contains all SQLAlchemy ORM models for the food package engine.
"""

from .base import Base, BaseModel
from .locale import Locale
from .food import (
    AssociatedFood,
    Brand,
    Food,
    FoodAttributes,
    FoodCategory,
    FoodNutrient,
    FoodPortionSizeMethod,
)
from .category import (
    Category,
    CategoryAttributes,
    CategoryCategory,
    CategoryPortionSizeMethod,
)
from .nutrient_table import NutrientTable, NutrientTableRecord
from .image import (
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

__all__ = [
    "Base",
    "BaseModel",
    "Locale",
    "Food",
    "FoodAttributes",
    "FoodCategory",
    "FoodPortionSizeMethod",
    "AssociatedFood",
    "FoodNutrient",
    "Brand",
    "Category",
    "CategoryAttributes",
    "CategoryCategory",
    "CategoryPortionSizeMethod",
    "NutrientTable",
    "NutrientTableRecord",
    "SourceImage",
    "SourceImageKeyword",
    "AsServedSet",
    "AsServedImage",
    "ImageMap",
    "ImageMapObject",
    "GuideImage",
    "GuideImageObject",
    "DrinkwareSet",
    "DrinkwareScale",
    "DrinkwareVolumeSample",
    "DrinkwareScaleV2",
]
