"""
Portion size sheet of the spreadsheet export.

Methods are pivoted into fixed column sections, one per method kind. A food
with two as-served methods and one guide image method takes two rows: the
first row carries the first method of each kind, the second row the second
as-served method. Standard portion and parent portion details live on their
own sheets; direct weight and "don't know" only show as flags.

Row layout (0-based):
    0   section titles, merged across each section
    1   column headers
    2+  data rows
"""

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Union

from xlsxwriter.utility import xl_col_to_name

from src.services.package_schemas import PackageCategory, PackageFood


@dataclass
class PortionSizeSection:
    method: str
    title: str
    columns: List[str]
    width: int = 18


PORTION_SIZE_SECTIONS = [
    PortionSizeSection(
        "as-served",
        "As served",
        [
            "Serving image set ID",
            "Leftovers image set ID",
            "Conversion factor",
            "Show labels",
            "Multiple option",
            "Use if ingredient",
        ],
    ),
    PortionSizeSection(
        "guide-image",
        "Guide image",
        ["Guide image ID", "Conversion factor", "Show labels", "Use if ingredient"],
    ),
    PortionSizeSection(
        "drink-scale",
        "Drink scale",
        [
            "Drinkware set ID",
            "Conversion factor",
            "Show labels",
            "Multiple option",
            "Initial fill level",
            "Skip fill level",
            "Use if ingredient",
        ],
    ),
    PortionSizeSection(
        "cereal",
        "Cereals",
        ["Cereal type", "Conversion factor", "Show labels", "Use if ingredient"],
    ),
    PortionSizeSection(
        "milk-on-cereal",
        "Milk on cereal",
        ["Conversion factor", "Show labels", "Use if ingredient"],
    ),
    PortionSizeSection(
        "pizza",
        "Pizza",
        ["Conversion factor", "Show labels", "Use if ingredient"],
    ),
    PortionSizeSection(
        "pizza-v2",
        "Pizza (Version 2)",
        ["Conversion factor", "Show labels", "Use if ingredient"],
    ),
]

FIRST_DATA_ROW = 2


def parameter_values(psm) -> List[Any]:
    """Cell values of one method, in the column order of its section."""
    if psm.method == "as-served":
        return [
            psm.serving_image_set,
            psm.leftovers_image_set,
            psm.conversion_factor,
            psm.labels,
            psm.multiple,
            psm.use_for_recipes,
        ]
    if psm.method == "guide-image":
        return [psm.guide_image_id, psm.conversion_factor, psm.labels, psm.use_for_recipes]
    if psm.method == "drink-scale":
        return [
            psm.drinkware_id,
            psm.conversion_factor,
            psm.labels,
            psm.multiple,
            psm.initial_fill_level,
            psm.skip_fill_level,
            psm.use_for_recipes,
        ]
    if psm.method == "cereal":
        return [psm.type, psm.conversion_factor, psm.labels, psm.use_for_recipes]
    if psm.method in ("milk-on-cereal", "pizza", "pizza-v2"):
        return [psm.conversion_factor, psm.labels, psm.use_for_recipes]
    raise ValueError(f"Unexpected portion size method: {psm.method}")


class PortionSizeSheetWriter:
    """Writes the pivoted portion size rows of one workbook."""

    def __init__(self, workbook, worksheet, code_header: str, name_header: str, name_sheet: str):
        self.worksheet = worksheet
        self.name_sheet = name_sheet
        self.row = FIRST_DATA_ROW

        bold = workbook.add_format({"bold": True, "bottom": 1})
        title = workbook.add_format({"bold": True, "underline": 1, "align": "center", "left": 1, "right": 1})
        shaded = workbook.add_format({"bg_color": "#F0F0F0"})

        fixed_columns = [
            (code_header, 12),
            (name_header, 70),
            ('"Enter weight" option', 20),
            ('"Don\'t know" option', 23),
        ]
        for index, (_, width) in enumerate(fixed_columns):
            worksheet.set_column(index, index, width)

        headers = [header for header, _ in fixed_columns]
        column = len(fixed_columns)
        for section in PORTION_SIZE_SECTIONS:
            last = column + len(section.columns) - 1
            worksheet.set_column(column, last, section.width)
            worksheet.merge_range(0, column, 0, last, section.title, title)
            headers.extend(section.columns)
            column = last + 1

        self.colour_group_column = column
        worksheet.set_column(column, column, 1, None, {"hidden": True})
        headers.append("Color group")
        worksheet.write_row(1, 0, headers, bold)

        colour_letter = xl_col_to_name(column)
        worksheet.conditional_format(
            FIRST_DATA_ROW,
            0,
            99999,
            column - 1,
            {
                "type": "formula",
                "criteria": f"=${colour_letter}{FIRST_DATA_ROW + 1}=1",
                "format": shaded,
            },
        )

    def _section_values(self, grouped: Dict[str, list], index: int) -> List[Any]:
        values: List[Any] = []
        for section in PORTION_SIZE_SECTIONS:
            group = grouped.get(section.method, [])
            if index < len(group):
                section_values = parameter_values(group[index])
                if len(section_values) != len(section.columns):
                    raise ValueError(
                        f"{section.method} section has {len(section.columns)} columns, "
                        f"got {len(section_values)} values"
                    )
                values.extend(section_values)
            else:
                values.extend([None] * len(section.columns))
        return values

    def write_portion_size_methods(self, item: Union[PackageFood, PackageCategory]) -> None:
        grouped: Dict[str, list] = defaultdict(list)
        for psm in item.portion_size:
            grouped[psm.method].append(psm)

        row_count = max((len(group) for group in grouped.values()), default=0)
        colour_letter = xl_col_to_name(self.colour_group_column)

        for index in range(row_count):
            excel_row = self.row + 1
            values = [
                item.code,
                None,
                "direct-weight" in grouped,
                "unknown" in grouped,
            ] + self._section_values(grouped, index)
            self.worksheet.write_row(self.row, 0, values)

            self.worksheet.write_formula(
                self.row, 1, f"=VLOOKUP(A{excel_row},'{self.name_sheet}'!A:B,2,FALSE)"
            )
            if self.row == FIRST_DATA_ROW:
                self.worksheet.write_number(self.row, self.colour_group_column, 0)
            else:
                self.worksheet.write_formula(
                    self.row,
                    self.colour_group_column,
                    f"=IF(A{excel_row}=A{excel_row - 1},"
                    f"{colour_letter}{excel_row - 1},1-{colour_letter}{excel_row - 1})",
                )
            self.row += 1
