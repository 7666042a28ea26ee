"""
Spreadsheet package writer (XlsxWriter).

Workbooks are opened in constant-memory mode, so each row is flushed to
disk as soon as the next one starts and memory stays flat regardless of the
locale size. Workbooks are created on first use:

    foods-<locale>.xlsx       Foods master list, Alt. names, Nutrient mapping,
                              Tags, Brands, Associated foods, Attributes,
                              Portion size, Standard units, Parent food portion
    categories-<locale>.xlsx  Categories master list, Attributes, Portion size,
                              Standard units, Parent food portion
    portion-size.xlsx         As served sets, As served images, Image maps,
                              Guide images, Drinkware scales
"""

import json
from typing import Dict, List, Optional, Tuple

import xlsxwriter

from src.services.package_writers.base import PackageWriter
from src.services.package_writers.portion_size_sheet import PortionSizeSheetWriter
from src.utils.constants import USE_IN_RECIPES_LABELS, XLSX_TAG_COLUMNS

PORTION_SIZE_WORKBOOK = "portion-size.xlsx"

WORKBOOK_OPTIONS = {
    "constant_memory": True,
    "strings_to_formulas": False,
    "strings_to_urls": False,
}


def encode_use_in_recipes(value: Optional[int]) -> str:
    if value is None:
        return ""
    return USE_IN_RECIPES_LABELS.get(value, "")


class SheetWriter:
    """Appends rows to one worksheet below a bold header row."""

    def __init__(self, workbook, header_format, name: str, columns: List[Tuple[str, int]]):
        self.worksheet = workbook.add_worksheet(name)
        for index, (_, width) in enumerate(columns):
            self.worksheet.set_column(index, index, width)
        self.worksheet.write_row(0, 0, [header for header, _ in columns], header_format)
        self.row = 1

    def append(self, values: list) -> None:
        self.worksheet.write_row(self.row, 0, values)
        self.row += 1


def _attributes_columns(code_header: str) -> List[Tuple[str, int]]:
    return [
        (code_header, 12),
        ("Ready Meal Option", 20),
        ("Reasonable Amount", 20),
        ("Same As Before Option", 25),
        ("Use In Recipes", 15),
    ]


def _standard_units_columns(code_header: str) -> List[Tuple[str, int]]:
    return [
        (code_header, 12),
        ("Portion size option", 20),
        ("Description", 26),
        ("Conversion factor", 18),
        ("Standard unit ID", 26),
        ("Unit weight", 12),
        ("Omit food name", 16),
        ("Inline estimate in", 80),
        ("Inline how many", 80),
    ]


def _parent_portion_columns(code_header: str) -> List[Tuple[str, int]]:
    return [
        (code_header, 12),
        ("Portion size option", 20),
        ("Method type", 20),
        ("Description", 26),
        ("Conversion factor", 18),
        ("Category", 20),
        ("Parent portion", 60),
        ("Language", 18),
        ("Label", 60),
        ("Short label", 60),
    ]


class _LocaleWorkbook:
    """Sheets shared by the food and category workbooks of one locale."""

    def __init__(self, path, master_name: str, master_columns, code_header: str, name_header: str):
        self.workbook = xlsxwriter.Workbook(str(path), WORKBOOK_OPTIONS)
        self.header_format = self.workbook.add_format({"bold": True, "bottom": 1})
        self.master = self.sheet(master_name, master_columns)
        self.code_header = code_header
        self.name_header = name_header
        self.master_name = master_name

    def sheet(self, name: str, columns) -> SheetWriter:
        return SheetWriter(self.workbook, self.header_format, name, columns)

    def add_portion_size_sheets(self) -> None:
        self.attributes = self.sheet("Attributes", _attributes_columns(self.code_header))
        self.portion_sizes = PortionSizeSheetWriter(
            self.workbook,
            self.workbook.add_worksheet("Portion size"),
            self.code_header,
            self.name_header,
            self.master_name,
        )
        self.standard_units = self.sheet("Standard units", _standard_units_columns(self.code_header))
        self.parent_portions = self.sheet(
            "Parent food portion", _parent_portion_columns(self.code_header)
        )

    def write_attributes(self, code: str, attributes) -> None:
        self.attributes.append(
            [
                code,
                attributes.ready_meal_option,
                attributes.reasonable_amount,
                attributes.same_as_before_option,
                encode_use_in_recipes(attributes.use_in_recipes),
            ]
        )

    def write_portion_sizes(self, item) -> None:
        self.portion_sizes.write_portion_size_methods(item)

        standard_portions = [psm for psm in item.portion_size if psm.method == "standard-portion"]
        for option, psm in enumerate(standard_portions, start=1):
            for unit in psm.units:
                self.standard_units.append(
                    [
                        item.code,
                        option,
                        psm.description,
                        psm.conversion_factor,
                        unit.name,
                        unit.weight,
                        unit.omit_food_description,
                        unit.inline_estimate_in,
                        unit.inline_how_many,
                    ]
                )

        parent_portions = [
            psm
            for psm in item.portion_size
            if psm.method in ("milk-in-a-hot-drink", "parent-food-portion")
        ]
        for option, psm in enumerate(parent_portions, start=1):
            if psm.method == "milk-in-a-hot-drink":
                by_category = {None: psm.options}
            else:
                by_category = psm.options
            for category, languages in by_category.items():
                for language, options in languages.items():
                    for entry in options:
                        self.parent_portions.append(
                            [
                                item.code,
                                option,
                                psm.method,
                                psm.description,
                                psm.conversion_factor,
                                category,
                                entry.value,
                                language,
                                entry.label,
                                entry.short_label,
                            ]
                        )

    def close(self) -> None:
        self.workbook.close()


class _FoodsWorkbook(_LocaleWorkbook):
    def __init__(self, path):
        super().__init__(
            path,
            "Foods master list",
            [
                ("Code", 12),
                ("Name", 120),
                ("English Name", 120),
                ("Parent Categories", 80),
                ("Thumbnail Path", 80),
            ],
            "Food code",
            "Food name",
        )
        self.alt_names = self.sheet(
            "Alt. names", [("Code", 12), ("Language", 10), ("Alternative Name", 40)]
        )
        self.nutrients = self.sheet(
            "Nutrient mapping",
            [("Code", 12), ("Nutrient Table Id", 30), ("Nutrient Record Id", 30)],
        )
        self.tags = self.sheet(
            "Tags",
            [("Code", 12)] + [(f"Tag {i}", 30) for i in range(1, XLSX_TAG_COLUMNS + 1)],
        )
        self.brands = self.sheet("Brands", [("Code", 12), ("Brand Name", 30)])
        self.associated_foods = self.sheet(
            "Associated foods",
            [
                ("Code", 12),
                ("Associated food code", 20),
                ("Associated category code", 25),
                ("Multiple", 10),
                ("Link as main", 15),
                ("Language", 10),
                ("Generic name", 30),
                ("Prompt text", 60),
            ],
        )
        self.add_portion_size_sheets()


class _CategoriesWorkbook(_LocaleWorkbook):
    def __init__(self, path):
        super().__init__(
            path,
            "Categories master list",
            [
                ("Code", 12),
                ("Name", 90),
                ("English name", 90),
                ("Hidden", 10),
                ("Parent categories", 80),
            ],
            "Category code",
            "Category name",
        )
        self.add_portion_size_sheets()


class PackageXlsxWriter(PackageWriter):
    """One workbook per locale and entity kind, plus one for portion size assets."""

    def __init__(self, output_path):
        super().__init__(output_path)
        self._food_workbooks: Dict[str, _FoodsWorkbook] = {}
        self._category_workbooks: Dict[str, _CategoriesWorkbook] = {}
        self._portion_workbook = None
        self._portion_sheets: Dict[str, SheetWriter] = {}

    def _foods_workbook(self, locale_id: str) -> _FoodsWorkbook:
        if locale_id not in self._food_workbooks:
            self._food_workbooks[locale_id] = _FoodsWorkbook(
                self.output_path / f"foods-{locale_id}.xlsx"
            )
        return self._food_workbooks[locale_id]

    def _categories_workbook(self, locale_id: str) -> _CategoriesWorkbook:
        if locale_id not in self._category_workbooks:
            self._category_workbooks[locale_id] = _CategoriesWorkbook(
                self.output_path / f"categories-{locale_id}.xlsx"
            )
        return self._category_workbooks[locale_id]

    def _portion_sheet(self, name: str) -> SheetWriter:
        if self._portion_workbook is None:
            self._portion_workbook = xlsxwriter.Workbook(
                str(self.output_path / PORTION_SIZE_WORKBOOK), WORKBOOK_OPTIONS
            )
            header = self._portion_workbook.add_format({"bold": True, "bottom": 1})
            sheets = {
                "As served sets": [
                    ("ID", 20),
                    ("Description", 50),
                    ("Selection Image Path", 40),
                    ("Label JSON", 50),
                ],
                "As served images": [
                    ("Set ID", 20),
                    ("Image Path", 40),
                    ("Weight", 15),
                    ("Keywords", 50),
                    ("Label JSON", 50),
                ],
                "Image maps": [
                    ("Image map ID", 20),
                    ("Description", 50),
                    ("Base Image Path", 40),
                    ("Object ID", 12),
                    ("Object description", 40),
                    ("Navigation index", 18),
                    ("Outline JSON", 50),
                ],
                "Guide images": [
                    ("Guide image ID", 20),
                    ("Description", 50),
                    ("Image map ID", 20),
                    ("Object ID", 12),
                    ("Weight", 15),
                    ("Label JSON", 50),
                ],
                "Drinkware scales": [
                    ("Drinkware set ID", 20),
                    ("Description", 50),
                    ("Selection image map ID", 25),
                    ("Choice ID", 12),
                    ("Scale version", 15),
                    ("Base Image Path", 40),
                    ("Volume samples JSON", 50),
                    ("Label JSON", 50),
                ],
            }
            for sheet_name, columns in sheets.items():
                self._portion_sheets[sheet_name] = SheetWriter(
                    self._portion_workbook, header, sheet_name, columns
                )
        return self._portion_sheets[name]

    def write_locale(self, locale):
        # Locales are only carried by the JSON format
        pass

    def write_food(self, locale_id, food):
        workbook = self._foods_workbook(locale_id)

        workbook.master.append(
            [
                food.code,
                food.name,
                food.english_name,
                "; ".join(food.parent_categories),
                food.thumbnail_path or "",
            ]
        )

        for language, names in food.alternative_names.items():
            for name in names:
                workbook.alt_names.append([food.code, language, name])

        for table_id, record_id in food.nutrient_table_codes.items():
            workbook.nutrients.append([food.code, table_id, record_id])

        workbook.write_attributes(food.code, food.attributes)

        if food.tags:
            workbook.tags.append([food.code] + sorted(food.tags))

        for brand in food.brand_names:
            workbook.brands.append([food.code, brand])

        for associated in food.associated_foods:
            languages = list(dict.fromkeys(list(associated.generic_name) + list(associated.prompt_text)))
            for language in languages:
                workbook.associated_foods.append(
                    [
                        food.code,
                        associated.food_code or "",
                        associated.category_code or "",
                        associated.multiple,
                        associated.link_as_main,
                        language,
                        associated.generic_name.get(language, ""),
                        associated.prompt_text.get(language, ""),
                    ]
                )

        workbook.write_portion_sizes(food)

    def write_category(self, locale_id, category):
        workbook = self._categories_workbook(locale_id)

        workbook.master.append(
            [
                category.code,
                category.name,
                category.english_name,
                category.hidden,
                "; ".join(category.parent_categories),
            ]
        )
        workbook.write_attributes(category.code, category.attributes)
        workbook.write_portion_sizes(category)

    def write_as_served_set(self, as_served_set):
        self._portion_sheet("As served sets").append(
            [
                as_served_set.id,
                as_served_set.description,
                as_served_set.selection_image_path,
                json.dumps(as_served_set.label or {}, ensure_ascii=False),
            ]
        )
        images = self._portion_sheet("As served images")
        for image in as_served_set.images:
            images.append(
                [
                    as_served_set.id,
                    image.image_path,
                    image.weight,
                    "; ".join(image.image_keywords),
                    json.dumps(image.label or {}, ensure_ascii=False),
                ]
            )

    def write_image_map(self, image_map):
        sheet = self._portion_sheet("Image maps")
        for object_id, obj in image_map.objects.items():
            sheet.append(
                [
                    image_map.id,
                    image_map.description,
                    image_map.base_image_path,
                    object_id,
                    obj.description,
                    obj.navigation_index,
                    json.dumps(obj.outline_coordinates),
                ]
            )

    def write_guide_image(self, guide_image):
        sheet = self._portion_sheet("Guide images")
        for object_id, weight in guide_image.object_weights.items():
            sheet.append(
                [
                    guide_image.id,
                    guide_image.description,
                    guide_image.image_map_id,
                    object_id,
                    weight,
                    json.dumps(guide_image.label or {}, ensure_ascii=False),
                ]
            )

    def write_drinkware_set(self, drinkware_set):
        sheet = self._portion_sheet("Drinkware scales")
        for choice_id, scale in drinkware_set.scales.items():
            label = scale.label if isinstance(scale.label, dict) else {"en": scale.label}
            sheet.append(
                [
                    drinkware_set.id,
                    drinkware_set.description,
                    drinkware_set.selection_image_map_id,
                    choice_id,
                    scale.version,
                    scale.base_image_path,
                    json.dumps(scale.volume_samples),
                    json.dumps(label, ensure_ascii=False),
                ]
            )

    def _close(self) -> None:
        for workbook in self._food_workbooks.values():
            workbook.close()
        for workbook in self._category_workbooks.values():
            workbook.close()
        if self._portion_workbook is not None:
            self._portion_workbook.close()
