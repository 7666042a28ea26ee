"""
Package writer interface.

Writers are push-based: the exporter hands over one record at a time and
each write commits its row to disk immediately, so a locale is never held in
memory and an interrupted export keeps everything written so far.
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from src.services.package_schemas import (
    PackageAsServedSet,
    PackageCategory,
    PackageDrinkwareSet,
    PackageFood,
    PackageGuideImage,
    PackageImageMap,
    PackageLocale,
)


class PackageWriter(ABC):
    """Sink for the records of one export."""

    def __init__(self, output_path: Union[str, Path]):
        self.output_path = Path(output_path)
        self.output_path.mkdir(parents=True, exist_ok=True)
        self._finished = False

    @abstractmethod
    def write_locale(self, locale: PackageLocale) -> None:
        pass

    @abstractmethod
    def write_food(self, locale_id: str, food: PackageFood) -> None:
        pass

    @abstractmethod
    def write_category(self, locale_id: str, category: PackageCategory) -> None:
        pass

    @abstractmethod
    def write_as_served_set(self, as_served_set: PackageAsServedSet) -> None:
        pass

    @abstractmethod
    def write_image_map(self, image_map: PackageImageMap) -> None:
        pass

    @abstractmethod
    def write_guide_image(self, guide_image: PackageGuideImage) -> None:
        pass

    @abstractmethod
    def write_drinkware_set(self, drinkware_set: PackageDrinkwareSet) -> None:
        pass

    def finish(self) -> None:
        """
        Close every open output.

        Raises:
            RuntimeError: finish() was already called
        """
        if self._finished:
            raise RuntimeError(f"{type(self).__name__}.finish() called twice")
        self._finished = True
        self._close()

    @abstractmethod
    def _close(self) -> None:
        """Flush and close all outputs; called exactly once."""
