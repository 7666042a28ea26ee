"""Tests for bulk category synchronization."""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import aliased

from src.models.category import (
    Category,
    CategoryAttributes,
    CategoryCategory,
    CategoryPortionSizeMethod,
)
from src.services.category_bulk_service import bulk_update_categories
from src.services.dto import AttributesInput, BulkCategoryInput, PortionSizeMethodInput
from src.services.exceptions import ConflictError, ReferentialIntegrityError, ValidationError


def category(code, **overrides):
    values = {"code": code, "name": code.title(), "english_name": code.title()}
    values.update(overrides)
    return BulkCategoryInput(**values)


def stored_category(session, code, locale_id="en_GB"):
    return session.scalars(
        select(Category).where(Category.locale_id == locale_id, Category.code == code)
    ).one_or_none()


def parent_codes(session, code):
    parent = aliased(Category)
    child = aliased(Category)
    return list(
        session.scalars(
            select(parent.code)
            .join(CategoryCategory, CategoryCategory.category_id == parent.id)
            .join(child, child.id == CategoryCategory.sub_category_id)
            .where(child.code == code)
            .order_by(parent.code)
        )
    )


class TestBulkUpdateCategories:
    def test_empty_input_is_noop(self, test_db):
        result = bulk_update_categories("xx_XX", [], "overwrite")

        assert result.affected_codes == []

    def test_tree_in_one_call(self, test_db, sample_locale):
        result = bulk_update_categories(
            "en_GB",
            [
                category("BRDS", parent_categories=["BRED"]),
                category("BRED"),
                category("ROLL", parent_categories=["BRED", "BRDS"]),
            ],
            "abort",
        )

        assert result.affected_codes == ["BRDS", "BRED", "ROLL"]
        session = test_db()
        assert parent_codes(session, "BRDS") == ["BRED"]
        assert parent_codes(session, "ROLL") == ["BRDS", "BRED"]
        assert parent_codes(session, "BRED") == []

    def test_stores_attributes_and_portion_sizes(self, test_db, sample_locale):
        bulk_update_categories(
            "en_GB",
            [
                category(
                    "DRNK",
                    hidden=True,
                    attributes=AttributesInput(same_as_before_option=True),
                    portion_size_methods=[
                        PortionSizeMethodInput(method="direct-weight", description="weight"),
                        PortionSizeMethodInput(
                            method="drink-scale",
                            description="use_a_drink_scale",
                            conversion_factor=1.5,
                            parameters={"drinkwareId": "mugs"},
                        ),
                    ],
                )
            ],
            "abort",
        )

        session = test_db()
        drinks = stored_category(session, "DRNK")
        assert drinks.hidden is True
        attributes = session.scalars(
            select(CategoryAttributes).where(CategoryAttributes.category_id == drinks.id)
        ).one()
        assert attributes.same_as_before_option is True
        methods = session.scalars(
            select(CategoryPortionSizeMethod)
            .where(CategoryPortionSizeMethod.category_id == drinks.id)
            .order_by(CategoryPortionSizeMethod.order_by)
        ).all()
        assert [psm.method for psm in methods] == ["direct-weight", "drink-scale"]
        assert methods[1].conversion_factor == 1.5

    def test_overwrite_replaces_tags(self, test_db, sample_locale):
        bulk_update_categories("en_GB", [category("BRED", tags=["old_tag"])], "abort")

        bulk_update_categories("en_GB", [category("BRED", tags=["new_tag"])], "overwrite")

        assert stored_category(test_db(), "BRED").tags == ["new_tag"]

    def test_overwrite_replaces_child_rows(self, test_db, sample_locale):
        bulk_update_categories(
            "en_GB",
            [
                category("FOOD"),
                category("DRNK"),
                category(
                    "TEA",
                    parent_categories=["DRNK"],
                    attributes=AttributesInput(reasonable_amount=500),
                    portion_size_methods=[
                        PortionSizeMethodInput(method="direct-weight", description="weight")
                    ],
                ),
            ],
            "abort",
        )

        bulk_update_categories(
            "en_GB", [category("TEA", parent_categories=["FOOD"], hidden=True)], "overwrite"
        )

        session = test_db()
        tea = stored_category(session, "TEA")
        assert tea.hidden is True
        assert parent_codes(session, "TEA") == ["FOOD"]
        assert session.scalars(select(CategoryAttributes)).all() == []
        assert session.scalars(select(CategoryPortionSizeMethod)).all() == []

    def test_abort_lists_every_conflicting_code(self, test_db, sample_locale):
        bulk_update_categories("en_GB", [category("A"), category("C")], "abort")

        with pytest.raises(ConflictError) as exc_info:
            bulk_update_categories(
                "en_GB", [category("A"), category("B"), category("C")], "abort"
            )

        assert exc_info.value.codes == ["A", "C"]
        assert str(exc_info.value) == "Category codes already exist: A, C"
        assert stored_category(test_db(), "B") is None

    def test_skip_leaves_existing_category_untouched(self, test_db, sample_locale):
        bulk_update_categories(
            "en_GB",
            [category("PARENT"), category("KEEP", name="Original Name", tags=["original"])],
            "abort",
        )

        result = bulk_update_categories(
            "en_GB",
            [
                category("KEEP", name="New Name", tags=["changed"], parent_categories=["PARENT"]),
                category("ADDED", parent_categories=["PARENT"]),
            ],
            "skip",
        )

        assert result.affected_codes == ["ADDED"]
        assert result.skipped_codes == ["KEEP"]
        session = test_db()
        kept = stored_category(session, "KEEP")
        assert kept.name == "Original Name"
        assert kept.tags == ["original"]
        assert parent_codes(session, "KEEP") == []
        assert parent_codes(session, "ADDED") == ["PARENT"]

    def test_unknown_parents_listed_together(self, test_db, sample_locale):
        with pytest.raises(ReferentialIntegrityError) as exc_info:
            bulk_update_categories(
                "en_GB",
                [
                    category("A", parent_categories=["MISSING2"]),
                    category("B", parent_categories=["MISSING1", "A"]),
                ],
                "abort",
            )

        assert exc_info.value.codes == ["MISSING1", "MISSING2"]
        assert stored_category(test_db(), "A") is None

    def test_duplicate_codes_rejected(self, test_db, sample_locale):
        with pytest.raises(ValidationError):
            bulk_update_categories("en_GB", [category("A"), category("A")], "overwrite")

    def test_overwrite_changes_version(self, test_db, sample_locale):
        bulk_update_categories("en_GB", [category("A")], "abort")
        before = stored_category(test_db(), "A").version

        bulk_update_categories("en_GB", [category("A")], "overwrite")

        assert stored_category(test_db(), "A").version != before

    def test_unknown_conflict_strategy(self, test_db, sample_locale):
        with pytest.raises(ValueError):
            bulk_update_categories("en_GB", [category("A")], "merge")
