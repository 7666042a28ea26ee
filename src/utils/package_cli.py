"""
Food Package CLI Utility

Command-line interface for exporting, verifying and importing food packages.
No UI required - designed for operators, scripts and testing.

Usage Examples:
    # Create the database tables
    food-package init-db

    # Export foods and categories of two locales as JSON
    food-package export -l en_GB -l fr_FR -i foods -i categories

    # Export everything as spreadsheets, including portion size images
    food-package export -l en_GB -i foods -i categories -i locales \\
        -i portionSizeMethods -i portionSizeImages --format xlsx

    # Verify an uploaded package (prints the verified directory)
    food-package verify upload.zip --file-id 42

    # Verify and convert an Albane spreadsheet package
    food-package verify albane.zip --package-format albane

    # Import a verified package, overwriting existing foods
    food-package import uploads/verified-42 -i foods -i categories --foods overwrite
"""

import argparse
import json
import logging
import sys
import uuid
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from src.services.database import init_database
from src.services.exceptions import (
    ConflictError,
    LocaleNotFound,
    PackageExportError,
    PackageValidationFileErrors,
    PermissionDenied,
    PortionSizeConversionError,
    ReferentialIntegrityError,
    ServiceError,
    ValidationError,
)
from src.services.package_export_service import export_package
from src.services.package_handlers import PackageHandlerContext
from src.services.package_import_service import import_package
from src.services.package_schemas import (
    ConflictStrategies,
    PackageExportOptions,
    PackageImportOptions,
)
from src.services.package_verification_service import verify_package
from src.utils.config import get_config
from src.utils.constants import (
    CONFLICT_ABORT,
    CONFLICT_STRATEGIES,
    EXPORT_INCLUDE_OPTIONS,
    IMPORT_INCLUDE_OPTIONS,
    PACKAGE_FORMATS,
    UPLOAD_FORMAT_NATIVE,
    UPLOAD_FORMATS,
)


def print_service_error(error: ServiceError) -> None:
    """Print the kind of a service error and the identifiers it carries."""
    print(f"ERROR [{type(error).__name__}]: {error}")

    if isinstance(error, PackageValidationFileErrors):
        for file_name in sorted(error.file_errors):
            print(f"  {file_name}:")
            for message in error.file_errors[file_name]:
                print(f"    - {message.key}: {message}")
    elif isinstance(error, (ConflictError, ReferentialIntegrityError)):
        print(f"  kind: {error.kind}")
        print(f"  codes: {', '.join(error.codes)}")
    elif isinstance(error, ValidationError):
        for problem in error.errors:
            print(f"  - {problem}")
    elif isinstance(error, PermissionDenied):
        print(f"  permission: {error.permission}")
        if error.locales:
            print(f"  locales: {', '.join(error.locales)}")
    elif isinstance(error, LocaleNotFound):
        print(f"  locale: {error.locale_id}")
    elif isinstance(error, PackageExportError):
        print(f"  {error.entity}: {error.identifier}")
    elif isinstance(error, PortionSizeConversionError):
        print(f"  portion size method id: {error.record_id}")


def print_options_error(error: PydanticValidationError) -> None:
    print("ERROR [InvalidOptions]:")
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        print(f"  - {location}: {item['msg']}")


class ProgressPrinter:
    """Prints export progress in whole percent steps."""

    def __init__(self):
        self.last_percent = -1

    def __call__(self, progress: float) -> None:
        percent = int(progress * 100)
        if percent != self.last_percent:
            self.last_percent = percent
            print(f"  {percent}%")


def init_db_cmd():
    """Create all database tables."""
    config = get_config()
    print(f"Initializing database at {config.database_path}...")
    init_database()
    print("Database ready.")
    return 0


def export_cmd(locales: List[str], include: List[str], package_format: str, quiet: bool = False):
    """
    Export locales into a package archive in the downloads directory.

    Returns:
        0 on success, 1 on failure
    """
    try:
        options = PackageExportOptions(locales=locales, include=include, format=package_format)
    except PydanticValidationError as e:
        print_options_error(e)
        return 1

    print(f"Exporting {', '.join(locales)} ({', '.join(include)}) as {package_format}...")

    try:
        archive_path = export_package(options, progress_callback=None if quiet else ProgressPrinter())
    except ServiceError as e:
        print_service_error(e)
        return 1

    print(f"Package written to {archive_path}")
    return 0


def verify_cmd(uploaded_file: str, package_format: str, file_id: Optional[str], keep_upload: bool):
    """
    Verify an uploaded package and print its contents summary.

    Returns:
        0 if the package is valid, 1 otherwise
    """
    config = get_config()
    context = PackageHandlerContext(
        file_id=file_id or uuid.uuid4().hex,
        upload_dir=config.uploads_dir,
        albane_locale=config.albane_locale,
    )

    print(f"Verifying {uploaded_file} ({package_format})...")

    try:
        result = verify_package(
            uploaded_file, package_format, context, remove_upload=not keep_upload
        )
    except ServiceError as e:
        print_service_error(e)
        return 1

    print("\nVerification Passed")
    print("-------------------")
    print(f"Verified package: {result.extracted_path}")
    print(json.dumps(result.summary.to_dict(), indent=2))
    return 0


def import_cmd(
    verified_dir: str,
    include: List[str],
    locale_filter: Optional[List[str]],
    food_filter: Optional[List[str]],
    category_filter: Optional[List[str]],
    strategies: dict,
):
    """
    Import a verified package.

    Returns:
        0 on success, 1 on failure (nothing is written on failure)
    """
    try:
        options = PackageImportOptions(
            include=include,
            locale_filter=locale_filter,
            food_filter=food_filter,
            category_filter=category_filter,
            conflict_strategies=ConflictStrategies(**strategies),
        )
    except PydanticValidationError as e:
        print_options_error(e)
        return 1

    print(f"Importing {verified_dir}...")

    try:
        result = import_package(verified_dir, options)
    except ServiceError as e:
        print_service_error(e)
        return 1

    print(result.get_summary())
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="food-package",
        description="Export, verify and import food packages",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  Export foods and categories:
    food-package export -l en_GB -i foods -i categories

  Verify an upload:
    food-package verify upload.zip --file-id 42

  Import a verified package:
    food-package import uploads/verified-42 -i foods --foods overwrite
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log service operations")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("init-db", help="Create the database tables")

    export_parser = subparsers.add_parser("export", help="Export locales into a package")
    export_parser.add_argument(
        "-l", "--locale", dest="locales", action="append", required=True, help="Locale code"
    )
    export_parser.add_argument(
        "-i",
        "--include",
        action="append",
        choices=EXPORT_INCLUDE_OPTIONS,
        required=True,
        help="Stage to export (repeatable)",
    )
    export_parser.add_argument(
        "-f", "--format", dest="package_format", choices=PACKAGE_FORMATS, default="json"
    )
    export_parser.add_argument("-q", "--quiet", action="store_true", help="Hide progress")

    verify_parser = subparsers.add_parser("verify", help="Verify an uploaded package")
    verify_parser.add_argument("file", help="Uploaded package archive")
    verify_parser.add_argument(
        "--package-format", choices=UPLOAD_FORMATS, default=UPLOAD_FORMAT_NATIVE
    )
    verify_parser.add_argument("--file-id", help="Upload identifier (default: random)")
    verify_parser.add_argument(
        "--keep-upload", action="store_true", help="Do not delete the uploaded archive"
    )

    import_parser = subparsers.add_parser("import", help="Import a verified package")
    import_parser.add_argument("verified_dir", help="Directory printed by 'verify'")
    import_parser.add_argument(
        "-i",
        "--include",
        action="append",
        choices=IMPORT_INCLUDE_OPTIONS,
        required=True,
        help="Member to import (repeatable)",
    )
    import_parser.add_argument("--locale-filter", action="append", help="Only these locales")
    import_parser.add_argument("--food-filter", action="append", help="Only these food codes")
    import_parser.add_argument(
        "--category-filter", action="append", help="Only these category codes"
    )
    for entity in ("locales", "foods", "categories"):
        import_parser.add_argument(
            f"--{entity}",
            dest=f"{entity}_strategy",
            choices=CONFLICT_STRATEGIES,
            default=CONFLICT_ABORT,
            help=f"Conflict strategy for existing {entity} (default: abort)",
        )

    return parser


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "init-db":
        return init_db_cmd()

    # Every other command needs the tables
    init_database()

    if args.command == "export":
        return export_cmd(args.locales, args.include, args.package_format, args.quiet)
    elif args.command == "verify":
        return verify_cmd(args.file, args.package_format, args.file_id, args.keep_upload)
    elif args.command == "import":
        return import_cmd(
            args.verified_dir,
            args.include,
            args.locale_filter,
            args.food_filter,
            args.category_filter,
            {
                "locales": args.locales_strategy,
                "foods": args.foods_strategy,
                "categories": args.categories_strategy,
            },
        )
    else:
        print(f"Unknown command: {args.command}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
