"""Pytest configuration and fixtures for service layer tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, scoped_session

from src.models.base import Base


@pytest.fixture(scope="function")
def test_db():
    """Provide a clean test database for each test function.

    This fixture:
    1. Creates an in-memory SQLite database
    2. Creates all tables
    3. Provides the database to the test
    4. Drops all tables after the test completes
    """
    import src.models  # noqa: F401  (registers every model)

    # Create in-memory SQLite database for testing
    engine = create_engine("sqlite:///:memory:", echo=False)

    # Create all tables
    Base.metadata.create_all(engine)

    # Create session factory
    session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    Session = scoped_session(session_factory)

    # Monkey-patch the global session factory for tests
    import src.services.database as db_module

    original_get_session = db_module.get_session_factory
    db_module.get_session_factory = lambda: Session

    # Provide database to test
    yield Session

    # Cleanup
    Session.remove()
    Base.metadata.drop_all(engine)

    # Restore original session factory
    db_module.get_session_factory = original_get_session


@pytest.fixture(scope="function")
def package_config(tmp_path, monkeypatch):
    """Provide a Config whose directories all live under tmp_path."""
    from src.utils.config import Config

    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.setenv("FOOD_PACKAGE_IMAGES_DIR", str(tmp_path / "images"))
    monkeypatch.setenv("FOOD_PACKAGE_DOWNLOADS_DIR", str(tmp_path / "downloads"))
    monkeypatch.setenv("FOOD_PACKAGE_UPLOADS_DIR", str(tmp_path / "uploads"))
    return Config()


def make_locale_input(code="en_GB", english_name="United Kingdom", **overrides):
    from src.services.dto import LocaleInput

    values = {
        "code": code,
        "english_name": english_name,
        "local_name": english_name,
        "respondent_language_id": "en",
        "admin_language_id": "en",
        "country_flag_code": code.split("_")[-1].lower(),
    }
    values.update(overrides)
    return LocaleInput(**values)


@pytest.fixture
def locale_input():
    """Factory for LocaleInput records."""
    return make_locale_input


@pytest.fixture(scope="function")
def sample_locale(test_db):
    """Provide the en_GB locale."""
    from src.services.locale_service import bulk_update_locales

    bulk_update_locales([make_locale_input()], "abort")
    return "en_GB"


@pytest.fixture(scope="function")
def french_locale(test_db, sample_locale):
    """Provide fr_FR next to en_GB."""
    from src.services.locale_service import bulk_update_locales

    bulk_update_locales([make_locale_input("fr_FR", "France")], "abort")
    return "fr_FR"


@pytest.fixture(scope="function")
def nutrient_records(test_db):
    """Provide NDNS records 123 and 456."""
    from src.models.nutrient_table import NutrientTable, NutrientTableRecord

    session = test_db()
    session.add(NutrientTable(code="NDNS", description="UK National Diet and Nutrition Survey"))
    session.flush()
    session.add_all(
        [
            NutrientTableRecord(nutrient_table_code="NDNS", record_id="123", name="Bread, white, toasted"),
            NutrientTableRecord(nutrient_table_code="NDNS", record_id="456", name="Tea, infusion"),
        ]
    )
    session.commit()
    return [("NDNS", "123"), ("NDNS", "456")]


def build_portion_size_assets(session):
    """
    Store the image assets the sample catalog refers to.

    Creates:
    - As served sets "bread_slices" (two images) and "bread_leftovers"
    - Image maps "slices" and "mugs"
    - Guide image "slices_gi" on "slices"
    - Drinkware set "mugs" with a version 1 and a version 2 scale
    """
    from src.models.image import (
        AsServedImage,
        AsServedSet,
        DrinkwareScale,
        DrinkwareScaleV2,
        DrinkwareSet,
        DrinkwareVolumeSample,
        GuideImage,
        GuideImageObject,
        ImageMap,
        ImageMapObject,
        SourceImage,
        SourceImageKeyword,
    )

    images = {
        path: SourceImage(path=path)
        for path in [
            "as_served/bread/selection.jpg",
            "as_served/bread/large.jpg",
            "as_served/bread/small.jpg",
            "as_served/leftovers/crust.jpg",
            "image_maps/slices.jpg",
            "image_maps/mugs.jpg",
            "drinkware/mug_v2.jpg",
        ]
    }
    session.add_all(images.values())
    session.flush()

    session.add_all(
        [
            SourceImageKeyword(source_image_id=images["as_served/bread/large.jpg"].id, keyword="bread"),
            SourceImageKeyword(source_image_id=images["as_served/bread/large.jpg"].id, keyword="slice"),
        ]
    )

    bread_slices = AsServedSet(
        code="bread_slices",
        description="Bread slices",
        label={"en": "Bread"},
        selection_image_id=images["as_served/bread/selection.jpg"].id,
    )
    leftovers = AsServedSet(
        code="bread_leftovers",
        description="Bread leftovers",
        selection_image_id=images["as_served/leftovers/crust.jpg"].id,
    )
    session.add_all([bread_slices, leftovers])
    session.flush()
    session.add_all(
        [
            AsServedImage(
                as_served_set_id=bread_slices.id,
                source_image_id=images["as_served/bread/large.jpg"].id,
                weight=60.0,
            ),
            AsServedImage(
                as_served_set_id=bread_slices.id,
                source_image_id=images["as_served/bread/small.jpg"].id,
                weight=30.0,
                label={"en": "Thin slice"},
            ),
            AsServedImage(
                as_served_set_id=leftovers.id,
                source_image_id=images["as_served/leftovers/crust.jpg"].id,
                weight=5.0,
            ),
        ]
    )

    slices_map = ImageMap(
        code="slices", description="Slice sizes", base_image_id=images["image_maps/slices.jpg"].id
    )
    mugs_map = ImageMap(
        code="mugs", description="Mugs", base_image_id=images["image_maps/mugs.jpg"].id
    )
    session.add_all([slices_map, mugs_map])
    session.flush()
    session.add_all(
        [
            ImageMapObject(
                image_map_id=slices_map.id,
                object_id=1,
                description="Thin",
                navigation_index=0,
                outline_coordinates=[0.1, 0.1, 0.4, 0.1, 0.4, 0.5],
            ),
            ImageMapObject(
                image_map_id=slices_map.id,
                object_id=2,
                description="Thick",
                navigation_index=1,
                outline_coordinates=[0.5, 0.1, 0.9, 0.1, 0.9, 0.5],
            ),
            ImageMapObject(
                image_map_id=mugs_map.id,
                object_id=1,
                description="Mug",
                navigation_index=0,
                outline_coordinates=[0.2, 0.2, 0.8, 0.2, 0.8, 0.8],
            ),
        ]
    )

    guide_image = GuideImage(
        code="slices_gi", description="Bread slices", image_map_code="slices", label={"en": "Slices"}
    )
    session.add(guide_image)
    session.flush()
    session.add_all(
        [
            GuideImageObject(guide_image_id=guide_image.id, image_map_object_id=1, weight=25.0),
            GuideImageObject(guide_image_id=guide_image.id, image_map_object_id=2, weight=45.0),
        ]
    )

    drinkware = DrinkwareSet(code="mugs", description="Mugs", image_map_code="mugs")
    session.add(drinkware)
    session.flush()

    v1_scale = DrinkwareScale(
        drinkware_set_id=drinkware.id,
        choice_id=1,
        label="Mug",
        width=300,
        height=400,
        empty_level=350,
        full_level=50,
        base_image_path="drinkware/mug_base.jpg",
        overlay_image_path="drinkware/mug_overlay.png",
    )
    session.add(v1_scale)
    session.flush()
    session.add_all(
        [
            DrinkwareVolumeSample(drinkware_scale_id=v1_scale.id, fill=1.0, volume=300.0),
            DrinkwareVolumeSample(drinkware_scale_id=v1_scale.id, fill=0.0, volume=0.0),
            DrinkwareVolumeSample(drinkware_scale_id=v1_scale.id, fill=0.5, volume=140.0),
        ]
    )
    session.add(
        DrinkwareScaleV2(
            drinkware_set_id=drinkware.id,
            choice_id=2,
            label={"en": "Large mug"},
            base_image_id=images["drinkware/mug_v2.jpg"].id,
            outline_coordinates=[0.1, 0.9, 0.9, 0.9],
            volume_samples=[0.0, 0.0, 1.0, 450.0],
            volume_method="cylindrical",
        )
    )
    session.flush()


def sample_category_inputs():
    from src.services.dto import AttributesInput, BulkCategoryInput, PortionSizeMethodInput

    return [
        BulkCategoryInput(code="SPRD", name="Spreads", english_name="Spreads"),
        BulkCategoryInput(
            code="BRED",
            name="Bread",
            english_name="Bread",
            tags=["bakery"],
            attributes=AttributesInput(reasonable_amount=500),
            portion_size_methods=[
                PortionSizeMethodInput(
                    method="as-served",
                    description="use_an_image",
                    parameters={"servingImageSet": "bread_slices"},
                )
            ],
        ),
        BulkCategoryInput(
            code="BRDS", name="Sliced bread", english_name="Sliced bread", parent_categories=["BRED"]
        ),
        BulkCategoryInput(code="DRNK", name="Drinks", english_name="Drinks", hidden=True),
    ]


def sample_food_inputs():
    from src.services.dto import (
        AssociatedFoodInput,
        AttributesInput,
        BulkFoodInput,
        NutrientRecordInput,
        PortionSizeMethodInput,
    )

    return [
        BulkFoodInput(
            code="TOAST",
            name="White toast",
            english_name="White toast",
            alt_names={"en": ["toasted bread"]},
            tags=["toast", "bread"],
            attributes=AttributesInput(same_as_before_option=True, use_in_recipes=1),
            parent_categories=["BRDS"],
            nutrient_records=[NutrientRecordInput("NDNS", "123")],
            portion_size_methods=[
                PortionSizeMethodInput(
                    method="as-served",
                    description="use_an_image",
                    parameters={
                        "servingImageSet": "bread_slices",
                        "leftoversImageSet": "bread_leftovers",
                    },
                ),
                PortionSizeMethodInput(
                    method="guide-image",
                    description="use_a_guide_image",
                    conversion_factor=0.5,
                    parameters={"guideImageId": "slices_gi"},
                ),
                PortionSizeMethodInput(method="direct-weight", description="weight"),
            ],
            associated_foods=[
                AssociatedFoodInput(
                    category_code="SPRD",
                    text={"en": "Did you have anything on your toast?"},
                    generic_name={"en": "spread"},
                    multiple=True,
                )
            ],
            brand_names=["Hovis", "Warburtons"],
        ),
        BulkFoodInput(
            code="TEA",
            name="Tea",
            english_name="Tea",
            parent_categories=["DRNK"],
            nutrient_records=[NutrientRecordInput("NDNS", "456")],
            portion_size_methods=[
                PortionSizeMethodInput(
                    method="drink-scale",
                    description="use_a_drink_scale",
                    parameters={
                        "drinkwareId": "mugs",
                        "initialFillLevel": 0.9,
                        "skipFillLevel": False,
                    },
                )
            ],
            associated_foods=[
                AssociatedFoodInput(
                    food_code="MILK",
                    text={"en": "Did you have milk in your tea?"},
                    generic_name={"en": "milk"},
                    link_as_main=True,
                )
            ],
        ),
        BulkFoodInput(
            code="MILK",
            name="Milk",
            english_name="Milk",
            parent_categories=["DRNK"],
            portion_size_methods=[
                PortionSizeMethodInput(
                    method="standard-portion",
                    description="use_a_standard_portion",
                    parameters={
                        "units": [
                            {"name": "glass", "weight": 200.0, "omitFoodDescription": False},
                            {"name": "splash", "weight": 15.0, "omitFoodDescription": True},
                        ]
                    },
                )
            ],
        ),
    ]


@pytest.fixture(scope="function")
def sample_catalog(test_db, sample_locale, nutrient_records):
    """
    Provide an en_GB food list with image assets.

    Categories SPRD, BRED, BRDS (child of BRED) and DRNK; foods TOAST, TEA
    and MILK whose portion size methods refer to every kind of image asset.
    """
    from src.services.category_bulk_service import bulk_update_categories
    from src.services.database import session_scope
    from src.services.food_bulk_service import bulk_update_foods

    with session_scope() as session:
        build_portion_size_assets(session)
        bulk_update_categories(sample_locale, sample_category_inputs(), "abort", session=session)
        bulk_update_foods(sample_locale, sample_food_inputs(), "abort", session=session)

    return sample_locale
