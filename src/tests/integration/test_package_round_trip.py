"""
Integration tests for export -> verify -> import of food packages.

Tests cover:
- Importing an export into a new locale reproduces the same food list
- Re-importing an export over its own locale changes nothing but versions
"""

import json
import zipfile

import pytest

from src.services.package_export_service import export_package
from src.services.package_handlers import PackageHandlerContext
from src.services.package_import_service import import_package
from src.services.package_schemas import PackageExportOptions, PackageImportOptions
from src.services.package_verification_service import verify_package


# ============================================================================
# Helpers
# ============================================================================


def export_locale(config, locale_id):
    options = PackageExportOptions(
        locales=[locale_id], include=["foods", "categories", "locales"], format="json"
    )
    return export_package(options, config=config)


def read_member(archive_path, name):
    with zipfile.ZipFile(archive_path) as archive:
        return json.loads(archive.read(name))


def without_versions(records):
    return [{key: value for key, value in record.items() if key != "version"} for record in records]


def relabel_locale(verified_path, source, target):
    """Rewrite a verified package so its records belong to another locale."""
    for name in ("foods.json", "categories.json"):
        path = verified_path / name
        data = json.loads(path.read_text(encoding="utf-8"))
        data[target] = data.pop(source)
        path.write_text(json.dumps(data), encoding="utf-8")

    path = verified_path / "locales.json"
    [locale] = json.loads(path.read_text(encoding="utf-8"))
    locale.update({"id": target, "englishName": "Ireland", "localName": "Ireland", "flagCode": "ie"})
    path.write_text(json.dumps([locale]), encoding="utf-8")


@pytest.fixture
def exported_catalog(sample_catalog, package_config):
    """The en_GB sample catalog exported and verified."""
    archive_path = export_locale(package_config, "en_GB")
    package_config.uploads_dir.mkdir(parents=True, exist_ok=True)
    context = PackageHandlerContext(file_id="round-trip", upload_dir=package_config.uploads_dir)
    result = verify_package(archive_path, "native", context, remove_upload=False)
    return archive_path, result.extracted_path


# ============================================================================
# Round Trip Tests
# ============================================================================


class TestPackageRoundTrip:
    def test_import_into_new_locale(self, test_db, package_config, exported_catalog):
        archive_path, verified_path = exported_catalog
        relabel_locale(verified_path, "en_GB", "en_IE")

        result = import_package(
            verified_path, PackageImportOptions(include=["locales", "categories", "foods"])
        )

        assert result.locales_written == ["en_IE"]
        assert result.total_categories == 4
        assert result.total_foods == 3

        copy_path = export_locale(package_config, "en_IE")
        original_foods = read_member(archive_path, "foods.json")["en_GB"]
        copied_foods = read_member(copy_path, "foods.json")["en_IE"]
        assert without_versions(copied_foods) == without_versions(original_foods)

        original_categories = read_member(archive_path, "categories.json")["en_GB"]
        copied_categories = read_member(copy_path, "categories.json")["en_IE"]
        assert without_versions(copied_categories) == without_versions(original_categories)

        [copied_locale] = read_member(copy_path, "locales.json")
        assert copied_locale["id"] == "en_IE"
        assert copied_locale["englishName"] == "Ireland"

    def test_overwrite_own_locale_is_stable(self, test_db, package_config, exported_catalog):
        archive_path, verified_path = exported_catalog

        result = import_package(
            verified_path,
            PackageImportOptions(
                include=["categories", "foods"],
                conflict_strategies={"categories": "overwrite", "foods": "overwrite"},
            ),
        )

        assert result.locale_counts["en_GB"].foods_written == 3
        second_path = export_locale(package_config, "en_GB")
        assert without_versions(read_member(second_path, "foods.json")["en_GB"]) == without_versions(
            read_member(archive_path, "foods.json")["en_GB"]
        )

    def test_skip_own_locale_writes_nothing(self, test_db, exported_catalog):
        _, verified_path = exported_catalog

        result = import_package(
            verified_path,
            PackageImportOptions(
                include=["locales", "categories", "foods"],
                conflict_strategies={"locales": "skip", "categories": "skip", "foods": "skip"},
            ),
        )

        assert result.locales_skipped == ["en_GB"]
        assert result.total_foods == 0
        assert result.locale_counts["en_GB"].foods_skipped == 3
