"""
Albane package converter - builds a native package from Albane workbooks.

Albane is a French food composition export delivered as a set of
workbooks. Each workbook has one header row followed by data rows; only the
first columns are read:

    FDLIST.xlsx                        code | English name | local name
    CATEGORIES_I24_LIST.xlsx           code | English name | local name | hidden
    CATEGORIES_I24_FOOD.xlsx           food code | category code
    ALTERNATIVE_FOOD_DESCRIPTION.xlsx  food code | alternative name
    ASSOCIATED_FOOD_PROMPTS.xlsx       food code | category code | prompt | generic name
    FACETS.xlsx                        food code | facet
    US.xlsx                            food code | unit name | weight (g)
    FDQUANT.xlsx                       food code | reasonable amount (g)

Foods with standard units get a standard-portion method followed by
direct-weight; every other food gets direct-weight only. Facets become food
tags.

Usage:
    builder = AlbanePackageBuilder(source_dir, "fr_FR")
    result = builder.build()
    result.write_package(verified_dir)
"""

import json
import math
from collections import defaultdict
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from openpyxl import load_workbook

from src.services.exceptions import (
    FileValidationMessage,
    PackageConversionError,
    PackageValidationFileErrors,
)
from src.services.logging_utils import get_service_logger, log_operation
from src.services.package_schemas import (
    DirectWeightPsm,
    InheritableAttributes,
    PackageAssociatedFood,
    PackageCategory,
    PackageFood,
    PackageLocale,
    StandardPortionPsm,
    StandardUnit,
)
from src.utils.constants import (
    CATEGORIES_FILE,
    FOODS_FILE,
    LOCALES_FILE,
    PACKAGE_FORMAT_VERSION,
    PACKAGE_JSON_FILE,
)

logger = get_service_logger(__name__)

FOOD_LIST_FILE = "FDLIST.xlsx"
CATEGORY_FOOD_FILE = "CATEGORIES_I24_FOOD.xlsx"
CATEGORY_LIST_FILE = "CATEGORIES_I24_LIST.xlsx"
ALTERNATIVE_NAMES_FILE = "ALTERNATIVE_FOOD_DESCRIPTION.xlsx"
ASSOCIATED_FOODS_FILE = "ASSOCIATED_FOOD_PROMPTS.xlsx"
FACETS_FILE = "FACETS.xlsx"
STANDARD_UNITS_FILE = "US.xlsx"
QUANTITIES_FILE = "FDQUANT.xlsx"

REQUIRED_FILES = [
    FOOD_LIST_FILE,
    CATEGORY_FOOD_FILE,
    CATEGORY_LIST_FILE,
    ALTERNATIVE_NAMES_FILE,
    ASSOCIATED_FOODS_FILE,
    FACETS_FILE,
    STANDARD_UNITS_FILE,
    QUANTITIES_FILE,
]

TRUE_VALUES = {"1", "y", "yes", "true", "oui", "o"}


def _cell_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


@dataclass
class AlbaneConversionResult:
    """Native package records produced from one Albane package."""

    locales: List[PackageLocale] = field(default_factory=list)
    foods: Dict[str, List[PackageFood]] = field(default_factory=dict)
    categories: Dict[str, List[PackageCategory]] = field(default_factory=dict)

    def write_package(self, output_dir: Path) -> None:
        """Write package.json, locales.json, foods.json and categories.json."""
        output_dir.mkdir(parents=True, exist_ok=True)

        def write_json(file_name: str, data: Any) -> None:
            with open(output_dir / file_name, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

        write_json(PACKAGE_JSON_FILE, {"version": PACKAGE_FORMAT_VERSION, "format": "json"})
        write_json(LOCALES_FILE, [locale.to_package() for locale in self.locales])
        write_json(
            FOODS_FILE,
            {
                locale_id: [food.to_package() for food in foods]
                for locale_id, foods in self.foods.items()
            },
        )
        write_json(
            CATEGORIES_FILE,
            {
                locale_id: [category.to_package() for category in categories]
                for locale_id, categories in self.categories.items()
            },
        )


class AlbanePackageBuilder:
    """Reads the Albane workbooks of one extracted archive."""

    def __init__(self, source_dir: Path, locale_id: str):
        self.source_dir = Path(source_dir)
        self.locale_id = locale_id
        self.language = locale_id.split("_")[0]
        self._problems: Dict[str, List[str]] = defaultdict(list)

    def _rows(self, file_name: str, min_columns: int) -> Iterator[Tuple[int, List[Optional[str]]]]:
        """Yield (row number, cell texts) for every non-empty data row."""
        workbook = load_workbook(self.source_dir / file_name, read_only=True, data_only=True)
        try:
            sheet = workbook.worksheets[0]
            for row_number, row in enumerate(sheet.iter_rows(min_row=2, values_only=True), start=2):
                cells = [_cell_text(value) for value in row]
                if not any(cells):
                    continue
                cells.extend([None] * (min_columns - len(cells)))
                if cells[0] is None:
                    self._problems[file_name].append(f"Row {row_number}: missing code")
                    continue
                yield row_number, cells
        finally:
            workbook.close()

    def _number(self, file_name: str, row_number: int, text: Optional[str]) -> float:
        try:
            number = float(text)
        except (TypeError, ValueError):
            number = math.nan
        if not math.isfinite(number):
            raise PackageConversionError(file_name, [f"Row {row_number}: invalid number '{text}'"])
        return number

    def _check_food(self, file_name: str, row_number: int, code: str, food_codes: set) -> bool:
        if code in food_codes:
            return True
        self._problems[file_name].append(f"Row {row_number}: unknown food code {code}")
        return False

    def _check_category(
        self, file_name: str, row_number: int, code: Optional[str], category_codes: set
    ) -> bool:
        if code in category_codes:
            return True
        self._problems[file_name].append(f"Row {row_number}: unknown category code {code}")
        return False

    def build(self) -> AlbaneConversionResult:
        """
        Convert every workbook.

        Raises:
            PackageValidationFileErrors: Unknown codes or missing values,
                reported per workbook
            PackageConversionError: A value that cannot be read at all
        """
        food_names: Dict[str, Tuple[str, str]] = {}
        for row_number, cells in self._rows(FOOD_LIST_FILE, 3):
            code, english_name, local_name = cells[0], cells[1], cells[2]
            if code in food_names:
                self._problems[FOOD_LIST_FILE].append(f"Row {row_number}: duplicate food code {code}")
                continue
            if english_name is None and local_name is None:
                self._problems[FOOD_LIST_FILE].append(f"Row {row_number}: food {code} has no name")
                continue
            food_names[code] = (english_name or local_name, local_name or english_name)

        categories: List[PackageCategory] = []
        category_codes = set()
        for row_number, cells in self._rows(CATEGORY_LIST_FILE, 4):
            code, english_name, local_name, hidden = cells[0], cells[1], cells[2], cells[3]
            if code in category_codes:
                self._problems[CATEGORY_LIST_FILE].append(
                    f"Row {row_number}: duplicate category code {code}"
                )
                continue
            if english_name is None and local_name is None:
                self._problems[CATEGORY_LIST_FILE].append(
                    f"Row {row_number}: category {code} has no name"
                )
                continue
            categories.append(
                PackageCategory(
                    code=code,
                    name=local_name or english_name,
                    english_name=english_name or local_name,
                    hidden=(hidden or "").lower() in TRUE_VALUES,
                    attributes=InheritableAttributes(),
                    parent_categories=[],
                    portion_size=[],
                )
            )
            category_codes.add(code)
        food_codes = set(food_names)

        parents: Dict[str, List[str]] = defaultdict(list)
        for row_number, cells in self._rows(CATEGORY_FOOD_FILE, 2):
            food_code, category_code = cells[0], cells[1]
            if self._check_food(CATEGORY_FOOD_FILE, row_number, food_code, food_codes) and (
                self._check_category(CATEGORY_FOOD_FILE, row_number, category_code, category_codes)
            ):
                if category_code not in parents[food_code]:
                    parents[food_code].append(category_code)

        alternative_names: Dict[str, List[str]] = defaultdict(list)
        for row_number, cells in self._rows(ALTERNATIVE_NAMES_FILE, 2):
            if self._check_food(ALTERNATIVE_NAMES_FILE, row_number, cells[0], food_codes) and cells[1]:
                alternative_names[cells[0]].append(cells[1])

        associated: Dict[str, List[PackageAssociatedFood]] = defaultdict(list)
        for row_number, cells in self._rows(ASSOCIATED_FOODS_FILE, 4):
            food_code, category_code, prompt, generic_name = cells[:4]
            if not self._check_food(ASSOCIATED_FOODS_FILE, row_number, food_code, food_codes):
                continue
            if not self._check_category(
                ASSOCIATED_FOODS_FILE, row_number, category_code, category_codes
            ):
                continue
            associated[food_code].append(
                PackageAssociatedFood(
                    category_code=category_code,
                    prompt_text={self.language: prompt or ""},
                    link_as_main=False,
                    generic_name={self.language: generic_name or ""},
                )
            )

        tags: Dict[str, List[str]] = defaultdict(list)
        for row_number, cells in self._rows(FACETS_FILE, 2):
            if self._check_food(FACETS_FILE, row_number, cells[0], food_codes) and cells[1]:
                if cells[1] not in tags[cells[0]]:
                    tags[cells[0]].append(cells[1])

        units: Dict[str, List[StandardUnit]] = defaultdict(list)
        for row_number, cells in self._rows(STANDARD_UNITS_FILE, 3):
            if not self._check_food(STANDARD_UNITS_FILE, row_number, cells[0], food_codes):
                continue
            if cells[1] is None:
                self._problems[STANDARD_UNITS_FILE].append(f"Row {row_number}: missing unit name")
                continue
            units[cells[0]].append(
                StandardUnit(
                    name=cells[1],
                    weight=self._number(STANDARD_UNITS_FILE, row_number, cells[2]),
                    omit_food_description=False,
                )
            )

        amounts: Dict[str, int] = {}
        for row_number, cells in self._rows(QUANTITIES_FILE, 2):
            if self._check_food(QUANTITIES_FILE, row_number, cells[0], food_codes):
                amounts[cells[0]] = int(self._number(QUANTITIES_FILE, row_number, cells[1]))

        if self._problems:
            raise PackageValidationFileErrors(
                {
                    file_name: [
                        FileValidationMessage("conversionError", {"message": problem})
                        for problem in problems
                    ]
                    for file_name, problems in self._problems.items()
                }
            )

        foods = []
        for code, (english_name, local_name) in food_names.items():
            portion_size = []
            if units[code]:
                portion_size.append(
                    StandardPortionPsm(
                        method="standard-portion",
                        description="use_a_standard_portion",
                        units=units[code],
                    )
                )
            portion_size.append(DirectWeightPsm(method="direct-weight", description="weight"))

            foods.append(
                PackageFood(
                    code=code,
                    name=local_name,
                    english_name=english_name,
                    alternative_names=(
                        {self.language: alternative_names[code]} if alternative_names[code] else {}
                    ),
                    tags=tags[code],
                    attributes=InheritableAttributes(reasonable_amount=amounts.get(code)),
                    parent_categories=parents[code],
                    nutrient_table_codes={},
                    portion_size=portion_size,
                    associated_foods=associated[code],
                    brand_names=[],
                )
            )

        country = self.locale_id.split("_")[-1]
        locale = PackageLocale(
            id=self.locale_id,
            english_name=f"Albane ({country})",
            local_name=f"Albane ({country})",
            respondent_language=self.language,
            admin_language=self.language,
            flag_code=country.lower(),
        )

        log_operation(
            logger,
            "albane_conversion",
            "success",
            locale_id=self.locale_id,
            foods=len(foods),
            categories=len(categories),
        )

        return AlbaneConversionResult(
            locales=[locale],
            foods={self.locale_id: foods} if foods else {},
            categories={self.locale_id: categories} if categories else {},
        )
