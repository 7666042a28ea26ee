"""Tests for bulk food synchronization."""

import pytest
from sqlalchemy import select

from src.models.category import Category
from src.models.food import (
    AssociatedFood,
    Brand,
    Food,
    FoodAttributes,
    FoodCategory,
    FoodNutrient,
    FoodPortionSizeMethod,
)
from src.models.nutrient_table import NutrientTableRecord
from src.services.category_bulk_service import bulk_update_categories
from src.services.dto import (
    AssociatedFoodInput,
    AttributesInput,
    BulkCategoryInput,
    BulkFoodInput,
    NutrientRecordInput,
    PortionSizeMethodInput,
)
from src.services.exceptions import (
    ConflictError,
    LocaleNotFound,
    ReferentialIntegrityError,
    ValidationError,
)
from src.services.food_bulk_service import bulk_update_foods, validate_associated_foods


@pytest.fixture
def food_categories(test_db, sample_locale):
    """Categories BRED and SPRD in en_GB."""
    bulk_update_categories(
        sample_locale,
        [
            BulkCategoryInput(code="BRED", name="Bread", english_name="Bread"),
            BulkCategoryInput(code="SPRD", name="Spreads", english_name="Spreads"),
        ],
        "abort",
    )
    return ["BRED", "SPRD"]


def stored_food(session, code, locale_id="en_GB"):
    return session.scalars(
        select(Food).where(Food.locale_id == locale_id, Food.code == code)
    ).one_or_none()


def parent_codes(session, food_id):
    return list(
        session.scalars(
            select(Category.code)
            .join(FoodCategory, FoodCategory.category_id == Category.id)
            .where(FoodCategory.food_id == food_id)
            .order_by(Category.code)
        )
    )


def brand_names(session, food_id):
    return list(
        session.scalars(select(Brand.name).where(Brand.food_id == food_id).order_by(Brand.id))
    )


def food_count(session):
    return len(session.scalars(select(Food.id)).all())


class TestValidateAssociatedFoods:
    def test_valid_targets(self):
        records = [
            BulkFoodInput(
                code="A",
                name="A",
                english_name="A",
                associated_foods=[
                    AssociatedFoodInput(food_code="B"),
                    AssociatedFoodInput(category_code="C"),
                ],
            )
        ]

        assert validate_associated_foods(records) == []

    def test_both_and_neither_reported_together(self):
        records = [
            BulkFoodInput(
                code="A",
                name="A",
                english_name="A",
                associated_foods=[
                    AssociatedFoodInput(food_code="B", category_code="C"),
                    AssociatedFoodInput(),
                ],
            )
        ]

        errors = validate_associated_foods(records)

        assert len(errors) == 2
        assert "both" in errors[0]
        assert "one of" in errors[1]


class TestBulkUpdateFoods:
    def test_empty_input_is_noop(self, test_db):
        result = bulk_update_foods("xx_XX", [], "abort")

        assert result.affected_codes == []
        assert result.skipped_codes == []

    def test_unknown_locale(self, test_db):
        with pytest.raises(LocaleNotFound):
            bulk_update_foods("xx_XX", [BulkFoodInput(code="A", name="A", english_name="A")], "abort")

    def test_inserts_food_with_children(self, test_db, food_categories, nutrient_records):
        record = BulkFoodInput(
            code="TOAST",
            name="White toast",
            english_name="White toast",
            alt_names={"en": ["toasted bread"]},
            tags=["toast"],
            attributes=AttributesInput(reasonable_amount=300),
            parent_categories=["BRED"],
            nutrient_records=[NutrientRecordInput("NDNS", "123")],
            portion_size_methods=[
                PortionSizeMethodInput(method="direct-weight", description="weight"),
                PortionSizeMethodInput(
                    method="guide-image",
                    description="use_a_guide_image",
                    parameters={"guideImageId": "slices_gi"},
                ),
            ],
            associated_foods=[AssociatedFoodInput(category_code="SPRD", text={"en": "Spread?"})],
            brand_names=["Warburtons", "Hovis"],
        )

        result = bulk_update_foods("en_GB", [record], "abort")

        assert result.affected_codes == ["TOAST"]
        session = test_db()
        food = stored_food(session, "TOAST")
        assert food.name == "White toast"
        assert food.alt_names == {"en": ["toasted bread"]}
        assert food.tags == ["toast"]
        assert food.version
        assert parent_codes(session, food.id) == ["BRED"]
        assert brand_names(session, food.id) == ["Warburtons", "Hovis"]

        attributes = session.scalars(
            select(FoodAttributes).where(FoodAttributes.food_id == food.id)
        ).one()
        assert attributes.reasonable_amount == 300
        assert attributes.use_in_recipes is None

        methods = session.scalars(
            select(FoodPortionSizeMethod)
            .where(FoodPortionSizeMethod.food_id == food.id)
            .order_by(FoodPortionSizeMethod.order_by)
        ).all()
        assert [(psm.method, psm.order_by) for psm in methods] == [
            ("direct-weight", 0),
            ("guide-image", 1),
        ]
        assert methods[1].parameters == {"guideImageId": "slices_gi"}

        [associated] = session.scalars(
            select(AssociatedFood).where(AssociatedFood.food_id == food.id)
        ).all()
        assert associated.associated_category_code == "SPRD"
        assert associated.text == {"en": "Spread?"}

        record_ids = session.scalars(
            select(NutrientTableRecord.record_id)
            .join(FoodNutrient, FoodNutrient.nutrient_table_record_id == NutrientTableRecord.id)
            .where(FoodNutrient.food_id == food.id)
        ).all()
        assert record_ids == ["123"]

    def test_all_null_attributes_store_no_row(self, test_db, sample_locale):
        bulk_update_foods("en_GB", [BulkFoodInput(code="A", name="A", english_name="A")], "abort")

        session = test_db()
        assert session.scalars(select(FoodAttributes)).all() == []

    def test_abort_lists_every_conflicting_code(self, test_db, sample_locale):
        bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(code="A", name="A", english_name="A"),
                BulkFoodInput(code="C", name="C", english_name="C"),
            ],
            "abort",
        )

        with pytest.raises(ConflictError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(code=code, name=code, english_name=code)
                    for code in ("A", "B", "C")
                ],
                "abort",
            )

        assert exc_info.value.codes == ["A", "C"]
        assert exc_info.value.kind == "Food"
        assert str(exc_info.value) == "Food codes already exist: A, C"
        assert stored_food(test_db(), "B") is None

    def test_overwrite_replaces_fields_and_children(self, test_db, food_categories):
        bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(
                    code="TOAST",
                    name="Toast",
                    english_name="Toast",
                    tags=["old_tag"],
                    parent_categories=["BRED"],
                    brand_names=["Hovis"],
                    attributes=AttributesInput(reasonable_amount=100),
                )
            ],
            "abort",
        )
        session = test_db()
        original_version = stored_food(session, "TOAST").version

        result = bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(
                    code="TOAST",
                    name="Hot toast",
                    english_name="Hot toast",
                    tags=["new_tag"],
                    parent_categories=["SPRD"],
                )
            ],
            "overwrite",
        )

        assert result.affected_codes == ["TOAST"]
        session = test_db()
        food = stored_food(session, "TOAST")
        assert food.name == "Hot toast"
        assert food.tags == ["new_tag"]
        assert food.version != original_version
        assert parent_codes(session, food.id) == ["SPRD"]
        assert brand_names(session, food.id) == []
        assert session.scalars(select(FoodAttributes)).all() == []

    def test_overwrite_is_idempotent(self, test_db, food_categories):
        records = [
            BulkFoodInput(code="A", name="A", english_name="A", parent_categories=["BRED"]),
            BulkFoodInput(code="B", name="B", english_name="B", brand_names=["X"]),
        ]

        bulk_update_foods("en_GB", records, "overwrite")
        bulk_update_foods("en_GB", records, "overwrite")

        session = test_db()
        assert food_count(session) == 2
        assert parent_codes(session, stored_food(session, "A").id) == ["BRED"]
        assert brand_names(session, stored_food(session, "B").id) == ["X"]

    def test_skip_leaves_existing_food_untouched(self, test_db, food_categories):
        bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(
                    code="EXISTING_FOOD_SKIP",
                    name="Original Name",
                    english_name="Original Name",
                    parent_categories=["BRED"],
                    brand_names=["Original brand"],
                )
            ],
            "abort",
        )

        result = bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(
                    code="EXISTING_FOOD_SKIP",
                    name="New Name",
                    english_name="New Name",
                    parent_categories=["SPRD"],
                    brand_names=["New brand"],
                ),
                BulkFoodInput(code="NEW", name="New", english_name="New", parent_categories=["SPRD"]),
            ],
            "skip",
        )

        assert result.affected_codes == ["NEW"]
        assert result.skipped_codes == ["EXISTING_FOOD_SKIP"]
        session = test_db()
        existing = stored_food(session, "EXISTING_FOOD_SKIP")
        assert existing.name == "Original Name"
        assert parent_codes(session, existing.id) == ["BRED"]
        assert brand_names(session, existing.id) == ["Original brand"]
        assert parent_codes(session, stored_food(session, "NEW").id) == ["SPRD"]

    def test_skipped_food_references_are_not_checked(self, test_db, food_categories):
        bulk_update_foods("en_GB", [BulkFoodInput(code="A", name="A", english_name="A")], "abort")

        result = bulk_update_foods(
            "en_GB",
            [BulkFoodInput(code="A", name="A", english_name="A", parent_categories=["MISSING"])],
            "skip",
        )

        assert result.affected_codes == []

    def test_unknown_parent_category_rejected(self, test_db, food_categories):
        with pytest.raises(ReferentialIntegrityError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(
                        code="A", name="A", english_name="A", parent_categories=["BRED", "MISSING"]
                    )
                ],
                "abort",
            )

        assert exc_info.value.kind == "Category"
        assert exc_info.value.codes == ["MISSING"]
        assert "MISSING" in str(exc_info.value)
        assert food_count(test_db()) == 0

    def test_every_missing_reference_kind_reported(self, test_db, food_categories):
        with pytest.raises(ValidationError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(
                        code="A",
                        name="A",
                        english_name="A",
                        parent_categories=["NOPE"],
                        associated_foods=[AssociatedFoodInput(food_code="GHOST")],
                        nutrient_records=[NutrientRecordInput("NDNS", "999")],
                    )
                ],
                "abort",
            )

        assert not isinstance(exc_info.value, ReferentialIntegrityError)
        assert exc_info.value.errors == [
            "Category codes not found in locale en_GB: NOPE",
            "Food codes not found in locale en_GB: GHOST",
            "Nutrient table record codes not found in locale en_GB: NDNS/999",
        ]
        assert food_count(test_db()) == 0

    def test_unknown_nutrient_record_rejected(self, test_db, sample_locale, nutrient_records):
        with pytest.raises(ReferentialIntegrityError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(
                        code="A",
                        name="A",
                        english_name="A",
                        nutrient_records=[
                            NutrientRecordInput("NDNS", "123"),
                            NutrientRecordInput("NDNS", "999"),
                            NutrientRecordInput("CIQUAL", "123"),
                        ],
                    )
                ],
                "abort",
            )

        assert exc_info.value.kind == "Nutrient table record"
        assert exc_info.value.codes == ["CIQUAL/123", "NDNS/999"]

    def test_associated_target_must_be_exclusive(self, test_db, food_categories):
        with pytest.raises(ValidationError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(
                        code="A",
                        name="A",
                        english_name="A",
                        associated_foods=[
                            AssociatedFoodInput(food_code="B", category_code="BRED")
                        ],
                    )
                ],
                "abort",
            )

        assert "both" in exc_info.value.errors[0]
        assert food_count(test_db()) == 0

    def test_associated_food_in_same_input(self, test_db, sample_locale):
        result = bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(
                    code="TEA",
                    name="Tea",
                    english_name="Tea",
                    associated_foods=[AssociatedFoodInput(food_code="MILK", link_as_main=True)],
                ),
                BulkFoodInput(code="MILK", name="Milk", english_name="Milk"),
            ],
            "abort",
        )

        assert result.affected_codes == ["MILK", "TEA"]

    def test_duplicate_codes_rejected(self, test_db, sample_locale):
        with pytest.raises(ValidationError) as exc_info:
            bulk_update_foods(
                "en_GB",
                [
                    BulkFoodInput(code="A", name="A", english_name="A"),
                    BulkFoodInput(code="A", name="A2", english_name="A2"),
                ],
                "overwrite",
            )

        assert exc_info.value.errors == ["Duplicate food codes in input: A"]

    def test_on_change_receives_affected_codes(self, test_db, sample_locale):
        changes = []

        bulk_update_foods(
            "en_GB",
            [
                BulkFoodInput(code="B", name="B", english_name="B"),
                BulkFoodInput(code="A", name="A", english_name="A"),
            ],
            "abort",
            on_change=lambda locale_id, codes: changes.append((locale_id, codes)),
        )

        assert changes == [("en_GB", ["A", "B"])]

    def test_foods_are_scoped_by_locale(self, test_db, french_locale):
        bulk_update_foods("en_GB", [BulkFoodInput(code="A", name="Apple", english_name="Apple")], "abort")

        result = bulk_update_foods(
            "fr_FR", [BulkFoodInput(code="A", name="Pomme", english_name="Apple")], "abort"
        )

        assert result.affected_codes == ["A"]
        session = test_db()
        assert stored_food(session, "A", "en_GB").name == "Apple"
        assert stored_food(session, "A", "fr_FR").name == "Pomme"
