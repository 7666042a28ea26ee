"""
Tests for the food package CLI.

Tests cover:
- Argument parsing
- export / verify / import commands
- Error reporting and exit codes
"""

import json
import zipfile

import pytest
from sqlalchemy import select

from src.models.food import Food
from src.services.exceptions import ConflictError, LocaleNotFound, PermissionDenied
from src.utils import package_cli
from src.utils.package_cli import (
    ProgressPrinter,
    build_parser,
    import_cmd,
    main,
    print_service_error,
    verify_cmd,
)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def cli_config(package_config, monkeypatch):
    """Point the CLI at a temporary config and skip table creation."""
    package_config.uploads_dir.mkdir(parents=True, exist_ok=True)
    monkeypatch.setattr(package_cli, "get_config", lambda: package_config)
    monkeypatch.setattr(package_cli, "init_database", lambda: None)
    return package_config


@pytest.fixture
def upload(tmp_path):
    """Native package upload with one en_GB food and its category."""
    path = tmp_path / "upload.zip"
    members = {
        "package.json": {"version": "2.0", "format": "json"},
        "categories.json": {
            "en_GB": [
                {
                    "code": "BRED",
                    "name": "Bread",
                    "englishName": "Bread",
                    "hidden": False,
                    "attributes": {},
                    "parentCategories": [],
                    "portionSize": [],
                }
            ]
        },
        "foods.json": {
            "en_GB": [
                {
                    "code": "TOAST",
                    "name": "Toast",
                    "englishName": "Toast",
                    "attributes": {},
                    "parentCategories": ["BRED"],
                    "nutrientTableCodes": {},
                    "portionSize": [{"method": "direct-weight", "description": "weight"}],
                    "associatedFoods": [],
                    "brandNames": [],
                }
            ]
        },
    }
    with zipfile.ZipFile(path, "w") as archive:
        for name, content in members.items():
            archive.writestr(name, json.dumps(content))
    return path


# ============================================================================
# Parser Tests
# ============================================================================


class TestBuildParser:
    def test_export_arguments(self):
        args = build_parser().parse_args(
            ["export", "-l", "en_GB", "-l", "fr_FR", "-i", "foods", "-i", "categories"]
        )

        assert args.command == "export"
        assert args.locales == ["en_GB", "fr_FR"]
        assert args.include == ["foods", "categories"]
        assert args.package_format == "json"

    def test_export_requires_locale(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["export", "-i", "foods"])

    def test_rejects_unknown_stage(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["export", "-l", "en_GB", "-i", "recipes"])

    def test_import_strategies_default_to_abort(self):
        args = build_parser().parse_args(["import", "dir", "-i", "foods", "--foods", "overwrite"])

        assert args.foods_strategy == "overwrite"
        assert args.categories_strategy == "abort"
        assert args.locales_strategy == "abort"
        assert args.food_filter is None

    def test_verify_defaults(self):
        args = build_parser().parse_args(["verify", "upload.zip"])

        assert args.package_format == "native"
        assert args.file_id is None
        assert args.keep_upload is False


# ============================================================================
# Command Tests
# ============================================================================


class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_export_dispatch(self, cli_config, tmp_path, monkeypatch, capsys):
        calls = []

        def fake_export(options, progress_callback=None):
            calls.append(options)
            progress_callback(0.5)
            progress_callback(1.0)
            return tmp_path / "foods-export.zip"

        monkeypatch.setattr(package_cli, "export_package", fake_export)

        assert main(["export", "-l", "en_GB", "-i", "foods", "-f", "xlsx"]) == 0

        assert calls[0].locales == ["en_GB"]
        assert calls[0].format == "xlsx"
        output = capsys.readouterr().out
        assert "50%" in output
        assert "Package written to" in output

    def test_export_service_error(self, cli_config, monkeypatch, capsys):
        def fake_export(options, progress_callback=None):
            raise LocaleNotFound("xx_XX")

        monkeypatch.setattr(package_cli, "export_package", fake_export)

        assert main(["export", "-l", "xx_XX", "-i", "foods", "-q"]) == 1

        output = capsys.readouterr().out
        assert "ERROR [LocaleNotFound]: Locale 'xx_XX' not found" in output
        assert "locale: xx_XX" in output

    def test_verify_then_import(self, test_db, sample_locale, cli_config, upload, capsys):
        assert main(["verify", str(upload), "--file-id", "42"]) == 0
        verified = cli_config.uploads_dir / "verified-42"
        assert "Verification Passed" in capsys.readouterr().out

        assert main(["import", str(verified), "-i", "categories", "-i", "foods"]) == 0

        output = capsys.readouterr().out
        assert "Total foods written: 1" in output
        codes = test_db().scalars(select(Food.code)).all()
        assert codes == ["TOAST"]

    def test_import_conflict_exit_code(self, test_db, sample_locale, cli_config, upload, capsys):
        main(["verify", str(upload), "--file-id", "7", "--keep-upload"])
        verified = str(cli_config.uploads_dir / "verified-7")
        main(["import", verified, "-i", "categories"])
        capsys.readouterr()

        assert main(["import", verified, "-i", "categories"]) == 1

        output = capsys.readouterr().out
        assert "ERROR [ConflictError]" in output
        assert "codes: BRED" in output


class TestCommands:
    def test_verify_invalid_upload(self, cli_config, tmp_path, capsys):
        not_a_zip = tmp_path / "upload.zip"
        not_a_zip.write_text("not a zip")

        assert verify_cmd(str(not_a_zip), "native", "9", keep_upload=True) == 1

        output = capsys.readouterr().out
        assert "ERROR [PackageValidationFileErrors]" in output
        assert "_uploadedFile:" in output

    def test_import_invalid_options(self, tmp_path, capsys):
        result = import_cmd(str(tmp_path), ["recipes"], None, None, None, {})

        assert result == 1
        assert "ERROR [InvalidOptions]" in capsys.readouterr().out


# ============================================================================
# Output Helpers
# ============================================================================


class TestOutputHelpers:
    def test_progress_printer_prints_each_percent_once(self, capsys):
        printer = ProgressPrinter()

        for value in (0.0, 0.001, 0.25, 0.251, 1.0):
            printer(value)

        assert capsys.readouterr().out.split() == ["0%", "25%", "100%"]

    def test_permission_denied_details(self, capsys):
        print_service_error(PermissionDenied("food-list:edit", ["fr_FR", "en_GB"]))

        output = capsys.readouterr().out
        assert "permission: food-list:edit" in output
        assert "locales: en_GB, fr_FR" in output

    def test_conflict_details(self, capsys):
        print_service_error(ConflictError("Food", ["B", "A"]))

        output = capsys.readouterr().out
        assert "kind: Food" in output
        assert "codes: A, B" in output
