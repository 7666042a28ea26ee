"""Tests for the export job (archive naming, zipping, cleanup, permissions)."""

import json
import logging
import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.models.food import Food
from src.services.database import session_scope
from src.services.exceptions import LocaleNotFound, PackageExportError, PermissionDenied
from src.services.package_export_service import (
    ImageCopier,
    archive_file_name,
    create_unique_file,
    export_package,
    zip_directory,
)
from src.services.package_schemas import PackageExportOptions
from src.services.permission_checks import StaticAccessPolicy


@pytest.fixture
def recorded_temp_dirs(tmp_path, monkeypatch):
    """Record the working directories the export job creates."""
    created = []
    real_mkdtemp = tempfile.mkdtemp
    work_root = tmp_path / "work"
    work_root.mkdir()

    def recording_mkdtemp(*args, **kwargs):
        kwargs["dir"] = str(work_root)
        path = real_mkdtemp(*args, **kwargs)
        created.append(Path(path))
        return path

    monkeypatch.setattr(tempfile, "mkdtemp", recording_mkdtemp)
    return created


def store_images(config, paths):
    for path in paths:
        target = config.images_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(path.encode("utf-8"))


class TestArchiveFileName:
    def test_carries_locales_and_timestamp(self, monkeypatch):
        monkeypatch.setattr(
            "src.services.package_export_service.timestamped_filename",
            lambda prefix, ext: f"{prefix}-20240131-154500.{ext}",
        )

        assert archive_file_name(["en_GB"]) == "food-package-en_GB-20240131-154500.zip"

    def test_locale_part_is_truncated(self):
        name = archive_file_name(["en_GB", "fr_FR", "de_DE"])

        assert name.startswith("food-package-en_GB-fr_FR-")
        assert "de_DE" not in name
        assert name.endswith(".zip")


class TestCreateUniqueFile:
    def test_free_name_used_as_is(self, tmp_path):
        path = create_unique_file(tmp_path / "package.zip")

        assert path == tmp_path / "package.zip"
        assert path.exists()

    def test_taken_names_get_a_counter(self, tmp_path):
        (tmp_path / "package.zip").write_text("taken")
        (tmp_path / "package-1.zip").write_text("taken")

        path = create_unique_file(tmp_path / "package.zip")

        assert path == tmp_path / "package-2.zip"
        assert (tmp_path / "package.zip").read_text() == "taken"


class TestZipDirectory:
    def test_relative_posix_names(self, tmp_path):
        source = tmp_path / "source"
        (source / "images" / "as_served").mkdir(parents=True)
        (source / "package.json").write_text("{}")
        (source / "images" / "as_served" / "a.jpg").write_bytes(b"jpg")

        zip_directory(source, tmp_path / "out.zip")

        with zipfile.ZipFile(tmp_path / "out.zip") as archive:
            assert sorted(archive.namelist()) == ["images/as_served/a.jpg", "package.json"]


class TestImageCopier:
    def test_copies_into_nested_directories(self, tmp_path):
        store = tmp_path / "store"
        (store / "as_served").mkdir(parents=True)
        (store / "as_served" / "a.jpg").write_bytes(b"jpg")
        copier = ImageCopier(store, tmp_path / "out")

        copier("as_served/a.jpg")

        assert (tmp_path / "out" / "as_served" / "a.jpg").read_bytes() == b"jpg"
        assert copier.missing == []

    def test_missing_image_is_logged_and_listed(self, tmp_path, caplog):
        copier = ImageCopier(tmp_path / "store", tmp_path / "out")

        with caplog.at_level(logging.WARNING):
            copier("as_served/missing.jpg")

        assert copier.missing == ["as_served/missing.jpg"]
        assert any(
            record.getMessage() == "copy_image: failed"
            and record.path == "as_served/missing.jpg"
            for record in caplog.records
        )


class TestExportPackage:
    def test_archive_contents(self, test_db, sample_catalog, package_config, recorded_temp_dirs):
        store_images(package_config, ["as_served/bread/large.jpg", "image_maps/slices.jpg"])
        options = PackageExportOptions(
            locales=["en_GB"],
            include=["foods", "categories", "locales", "portionSizeMethods", "portionSizeImages"],
        )

        archive_path = export_package(options, config=package_config)

        assert archive_path.parent == package_config.downloads_dir
        assert archive_path.name.startswith("food-package-en_GB-")
        with zipfile.ZipFile(archive_path) as archive:
            names = set(archive.namelist())
            manifest = json.loads(archive.read("package.json"))
            foods = json.loads(archive.read("foods.json"))
            large = archive.read("images/as_served/bread/large.jpg")

        assert {
            "package.json",
            "locales.json",
            "foods.json",
            "categories.json",
            "as-served-sets.json",
            "image-maps.json",
            "guide-images.json",
            "drinkware-sets.json",
            "images/as_served/bread/large.jpg",
            "images/image_maps/slices.jpg",
        } == names
        assert manifest == {"version": "2.0", "format": "json"}
        assert [food["code"] for food in foods["en_GB"]] == ["MILK", "TEA", "TOAST"]
        assert large == b"as_served/bread/large.jpg"

    def test_missing_images_do_not_fail_export(
        self, test_db, sample_catalog, package_config, recorded_temp_dirs, caplog
    ):
        options = PackageExportOptions(
            locales=["en_GB"], include=["foods", "portionSizeMethods", "portionSizeImages"]
        )

        with caplog.at_level(logging.WARNING):
            archive_path = export_package(options, config=package_config)

        assert archive_path.exists()
        warnings = [r for r in caplog.records if r.getMessage() == "copy_image: failed"]
        assert len(warnings) == 9

    def test_xlsx_archive(self, test_db, sample_catalog, package_config, recorded_temp_dirs):
        options = PackageExportOptions(
            locales=["en_GB"], include=["foods", "categories", "portionSizeMethods"], format="xlsx"
        )

        archive_path = export_package(options, config=package_config)

        with zipfile.ZipFile(archive_path) as archive:
            names = set(archive.namelist())
            manifest = json.loads(archive.read("package.json"))
        assert names == {
            "package.json",
            "foods-en_GB.xlsx",
            "categories-en_GB.xlsx",
            "portion-size.xlsx",
        }
        assert manifest["format"] == "xlsx"

    def test_temp_directory_removed(self, test_db, sample_catalog, package_config, recorded_temp_dirs):
        options = PackageExportOptions(locales=["en_GB"], include=["foods"])

        export_package(options, config=package_config)

        [temp_dir] = recorded_temp_dirs
        assert not temp_dir.exists()

    def test_progress_reaches_one(self, test_db, sample_catalog, package_config, recorded_temp_dirs):
        progress = []
        options = PackageExportOptions(locales=["en_GB"], include=["foods", "categories"])

        export_package(options, progress_callback=progress.append, config=package_config)

        assert progress[-1] == 1.0

    def test_second_archive_gets_distinct_name(
        self, test_db, sample_catalog, package_config, recorded_temp_dirs, monkeypatch
    ):
        moment = datetime(2024, 1, 31, 15, 45, tzinfo=timezone.utc)
        monkeypatch.setattr("src.utils.datetime_utils.utc_now", lambda: moment)
        options = PackageExportOptions(locales=["en_GB"], include=["foods"])

        first = export_package(options, config=package_config)
        second = export_package(options, config=package_config)

        assert first != second
        assert first.exists() and second.exists()

    def test_export_failure_cleans_up(self, test_db, sample_locale, package_config, recorded_temp_dirs):
        with session_scope() as session:
            session.add(
                Food(locale_id="en_GB", code="BAD", name="Bad", english_name="Bad", alt_names={"en": "x"})
            )
        options = PackageExportOptions(locales=["en_GB"], include=["foods"])

        with pytest.raises(PackageExportError):
            export_package(options, config=package_config)

        [temp_dir] = recorded_temp_dirs
        assert not temp_dir.exists()
        assert list(package_config.downloads_dir.iterdir()) == []

    def test_unknown_locale(self, test_db, sample_locale, package_config, recorded_temp_dirs):
        options = PackageExportOptions(locales=["en_GB", "xx_XX"], include=["foods"])

        with pytest.raises(LocaleNotFound) as exc_info:
            export_package(options, config=package_config)

        assert exc_info.value.locale_id == "xx_XX"
        assert recorded_temp_dirs == []

    def test_permission_denied(self, test_db, sample_locale, package_config, recorded_temp_dirs):
        options = PackageExportOptions(locales=["en_GB"], include=["foods"])

        with pytest.raises(PermissionDenied) as exc_info:
            export_package(options, access=StaticAccessPolicy(), config=package_config)

        assert exc_info.value.locales == ["en_GB"]
        assert recorded_temp_dirs == []

    def test_locale_permission_granted(self, test_db, sample_locale, package_config, recorded_temp_dirs):
        policy = StaticAccessPolicy(locale_permissions={"en_GB": {"food-list"}})
        options = PackageExportOptions(locales=["en_GB"], include=["locales"])

        archive_path = export_package(options, access=policy, config=package_config)

        with zipfile.ZipFile(archive_path) as archive:
            assert json.loads(archive.read("locales.json"))[0]["id"] == "en_GB"
