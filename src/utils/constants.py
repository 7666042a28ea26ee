"""
Constants and enumerations for the food package export/import engine.

This module defines all system-wide constants including:
- Application metadata
- Package container layout (member file names, format version)
- Export stages and their progress weights
- Attribute encodings shared by the writers
"""

from typing import Dict, List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Food Package Sync"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"
DATABASE_FILENAME = "food_packages.db"

# ============================================================================
# Package Container
# ============================================================================

PACKAGE_FORMAT_VERSION = "2.0"

# Export formats (package.json "format")
PACKAGE_FORMATS: List[str] = ["json", "xlsx"]

# Upload formats accepted by verification
UPLOAD_FORMAT_NATIVE = "native"
UPLOAD_FORMAT_ALBANE = "albane"
UPLOAD_FORMATS: List[str] = [UPLOAD_FORMAT_NATIVE, UPLOAD_FORMAT_ALBANE]

PACKAGE_JSON_FILE = "package.json"
LOCALES_FILE = "locales.json"
FOODS_FILE = "foods.json"
CATEGORIES_FILE = "categories.json"
AS_SERVED_SETS_FILE = "as-served-sets.json"
IMAGE_MAPS_FILE = "image-maps.json"
GUIDE_IMAGES_FILE = "guide-images.json"
DRINKWARE_SETS_FILE = "drinkware-sets.json"

IMAGES_DIRECTORY = "images"

# Key used for errors that concern the uploaded archive itself
UPLOADED_FILE_ERROR_KEY = "_uploadedFile"

# ============================================================================
# Export Stages
# ============================================================================

INCLUDE_FOODS = "foods"
INCLUDE_CATEGORIES = "categories"
INCLUDE_LOCALES = "locales"
INCLUDE_PORTION_SIZE_METHODS = "portionSizeMethods"
INCLUDE_PORTION_SIZE_IMAGES = "portionSizeImages"

EXPORT_INCLUDE_OPTIONS: List[str] = [
    INCLUDE_FOODS,
    INCLUDE_CATEGORIES,
    INCLUDE_LOCALES,
    INCLUDE_PORTION_SIZE_METHODS,
    INCLUDE_PORTION_SIZE_IMAGES,
]

# Stages repeated for every exported locale
LOCALE_STAGES: List[str] = [INCLUDE_FOODS, INCLUDE_CATEGORIES, INCLUDE_LOCALES]

# Stages run once per export
GLOBAL_STAGES: List[str] = [INCLUDE_PORTION_SIZE_METHODS, INCLUDE_PORTION_SIZE_IMAGES]

PROGRESS_WEIGHTS: Dict[str, float] = {
    INCLUDE_FOODS: 0.35,
    INCLUDE_CATEGORIES: 0.10,
    INCLUDE_LOCALES: 0.05,
    INCLUDE_PORTION_SIZE_METHODS: 0.10,
    INCLUDE_PORTION_SIZE_IMAGES: 0.40,
}

# Copied images between progress reports
IMAGE_PROGRESS_INTERVAL = 10

DEFAULT_EXPORT_BATCH_SIZE = 200

# ============================================================================
# Import
# ============================================================================

IMPORT_INCLUDE_OPTIONS: List[str] = ["locales", "foods", "categories"]

CONFLICT_ABORT = "abort"
CONFLICT_OVERWRITE = "overwrite"
CONFLICT_SKIP = "skip"
CONFLICT_STRATEGIES: List[str] = [CONFLICT_ABORT, CONFLICT_OVERWRITE, CONFLICT_SKIP]

# ============================================================================
# Permissions
# ============================================================================

PERMISSION_IMPORT_PACKAGE = "import-package"
PERMISSION_FOOD_LIST = "food-list"
PERMISSION_FOOD_LIST_EDIT = "food-list:edit"
PERMISSION_LOCALES = "locales"
PERMISSION_LOCALES_CREATE = "locales:create"

# ============================================================================
# Attributes
# ============================================================================

USE_IN_RECIPES_LABELS: Dict[int, str] = {
    0: "any_context",
    1: "regular_food",
    2: "recipe_ingredient",
}

# Number of tag columns in the spreadsheet Tags sheet
XLSX_TAG_COLUMNS = 12
