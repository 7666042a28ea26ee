"""
Package writers - sinks for exported records.

Usage:
    from src.services.package_writers import create_package_writer

    writer = create_package_writer("json", output_dir)
    writer.write_food("en_GB", food)
    writer.finish()
"""

from pathlib import Path
from typing import Callable, Dict, Union

from src.services.package_writers.base import PackageWriter
from src.services.package_writers.json_writer import PackageJsonWriter
from src.services.package_writers.xlsx_writer import PackageXlsxWriter

PACKAGE_WRITERS: Dict[str, Callable[[Union[str, Path]], PackageWriter]] = {
    "json": PackageJsonWriter,
    "xlsx": PackageXlsxWriter,
}


def create_package_writer(package_format: str, output_path: Union[str, Path]) -> PackageWriter:
    """
    Create the writer for an export format.

    Raises:
        ValueError: Unknown format
    """
    factory = PACKAGE_WRITERS.get(package_format)
    if factory is None:
        raise ValueError(
            f"Unknown package format '{package_format}'. "
            f"Expected one of: {', '.join(sorted(PACKAGE_WRITERS))}"
        )
    return factory(output_path)


__all__ = [
    "PACKAGE_WRITERS",
    "PackageJsonWriter",
    "PackageWriter",
    "PackageXlsxWriter",
    "create_package_writer",
]
