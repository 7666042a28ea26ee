"""
JSON package writer.

Each record is appended to a spool file as one JSON document per line and
flushed straight away. finish() assembles the package members from the
spools in the order the records arrived and removes the spool directory:

    locales.json          [locale, ...]
    foods.json            {locale: [food, ...]}
    categories.json       {locale: [category, ...]}
    as-served-sets.json   [set, ...]
    image-maps.json       [image map, ...]
    guide-images.json     [guide image, ...]
    drinkware-sets.json   [drinkware set, ...]

Only members that received at least one record are written.
"""

import json
import shutil
from collections import OrderedDict
from pathlib import Path
from typing import Dict, Optional, TextIO, Tuple

from src.services.package_schemas import PackageModel
from src.services.package_writers.base import PackageWriter
from src.utils.constants import (
    AS_SERVED_SETS_FILE,
    CATEGORIES_FILE,
    DRINKWARE_SETS_FILE,
    FOODS_FILE,
    GUIDE_IMAGES_FILE,
    IMAGE_MAPS_FILE,
    LOCALES_FILE,
)

SPOOL_DIRECTORY = ".spool"

MEMBER_ORDER = [
    LOCALES_FILE,
    FOODS_FILE,
    CATEGORIES_FILE,
    AS_SERVED_SETS_FILE,
    IMAGE_MAPS_FILE,
    GUIDE_IMAGES_FILE,
    DRINKWARE_SETS_FILE,
]

SpoolKey = Tuple[str, Optional[str]]


class PackageJsonWriter(PackageWriter):
    def __init__(self, output_path):
        super().__init__(output_path)
        self._spool_dir = self.output_path / SPOOL_DIRECTORY
        self._spool_dir.mkdir(exist_ok=True)
        # (member, locale or None) -> (spool path, open handle), in arrival order
        self._spools: "OrderedDict[SpoolKey, Tuple[Path, TextIO]]" = OrderedDict()

    def _append(self, member: str, locale_id: Optional[str], record: PackageModel) -> None:
        key = (member, locale_id)
        if key not in self._spools:
            path = self._spool_dir / f"{len(self._spools)}.jsonl"
            self._spools[key] = (path, open(path, "w", encoding="utf-8"))

        _, handle = self._spools[key]
        handle.write(json.dumps(record.to_package(), ensure_ascii=False))
        handle.write("\n")
        handle.flush()

    def write_locale(self, locale):
        self._append(LOCALES_FILE, None, locale)

    def write_food(self, locale_id, food):
        self._append(FOODS_FILE, locale_id, food)

    def write_category(self, locale_id, category):
        self._append(CATEGORIES_FILE, locale_id, category)

    def write_as_served_set(self, as_served_set):
        self._append(AS_SERVED_SETS_FILE, None, as_served_set)

    def write_image_map(self, image_map):
        self._append(IMAGE_MAPS_FILE, None, image_map)

    def write_guide_image(self, guide_image):
        self._append(GUIDE_IMAGES_FILE, None, guide_image)

    def write_drinkware_set(self, drinkware_set):
        self._append(DRINKWARE_SETS_FILE, None, drinkware_set)

    @staticmethod
    def _copy_array(spool_path: Path, out: TextIO, indent: str) -> None:
        """Write the spooled documents of one spool file as a JSON array."""
        out.write("[")
        first = True
        with open(spool_path, "r", encoding="utf-8") as spool:
            for line in spool:
                line = line.rstrip("\n")
                if not line:
                    continue
                out.write("\n" if first else ",\n")
                out.write(indent + "  " + line)
                first = False
        out.write("\n" + indent + "]" if not first else "]")

    def _assemble(self, member: str) -> None:
        spools: Dict[Optional[str], Path] = OrderedDict(
            (locale_id, path) for (name, locale_id), (path, _) in self._spools.items() if name == member
        )
        if not spools:
            return

        with open(self.output_path / member, "w", encoding="utf-8") as out:
            if None in spools:
                self._copy_array(spools[None], out, "")
            else:
                out.write("{")
                for index, (locale_id, path) in enumerate(spools.items()):
                    out.write("\n" if index == 0 else ",\n")
                    out.write(f"  {json.dumps(locale_id)}: ")
                    self._copy_array(path, out, "  ")
                out.write("\n}")
            out.write("\n")

    def _close(self) -> None:
        for _, handle in self._spools.values():
            handle.close()

        for member in MEMBER_ORDER:
            self._assemble(member)

        shutil.rmtree(self._spool_dir)
