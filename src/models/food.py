"""
Food models - a locale's foods and the child rows owned by each food.

A food is identified externally by its code, unique within its locale.
Every child collection (attributes, parent categories, portion size methods,
associated foods, nutrient mappings, brands) is owned by exactly one food and
is removed with it through ON DELETE CASCADE.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .base import BaseModel, new_version_token


class Food(BaseModel):
    """
    Food model.

    Attributes:
        locale_id: Owning locale code
        code: Natural key, unique per locale
        name: Display name in the locale's language
        english_name: English name
        simple_name: Normalized search name derived from name
        alt_names: Alternative names keyed by language ({"en": ["chips"]})
        tags: Free-form tag list
        version: Opaque token regenerated on every mutation
        thumbnail_path: Relative path of the thumbnail image, if any
    """

    __tablename__ = "foods"

    locale_id = Column(
        String(16), ForeignKey("locales.code", ondelete="CASCADE"), nullable=False
    )
    code = Column(String(64), nullable=False)
    name = Column(String(256), nullable=False)
    english_name = Column(String(256), nullable=False)
    simple_name = Column(String(256), nullable=True)
    alt_names = Column(JSON, nullable=False, default=dict)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(String(36), nullable=False, default=new_version_token)
    thumbnail_path = Column(String(512), nullable=True)

    attributes = relationship(
        "FoodAttributes", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    parent_links = relationship(
        "FoodCategory", cascade="all, delete-orphan", passive_deletes=True
    )
    portion_size_methods = relationship(
        "FoodPortionSizeMethod",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="FoodPortionSizeMethod.order_by",
    )
    associated_foods = relationship(
        "AssociatedFood",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AssociatedFood.order_by",
    )
    nutrient_mappings = relationship(
        "FoodNutrient", cascade="all, delete-orphan", passive_deletes=True
    )
    brands = relationship("Brand", cascade="all, delete-orphan", passive_deletes=True)

    __table_args__ = (
        UniqueConstraint("locale_id", "code", name="uq_food_locale_code"),
        Index("idx_food_locale_code", "locale_id", "code"),
    )


class FoodAttributes(BaseModel):
    """
    Inheritable attributes of a food.

    At most one row per food. A missing row, or a NULL field, means the value
    is inherited from the parent categories.
    """

    __tablename__ = "food_attributes"

    food_id = Column(
        Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    ready_meal_option = Column(Boolean, nullable=True)
    same_as_before_option = Column(Boolean, nullable=True)
    reasonable_amount = Column(Integer, nullable=True)
    use_in_recipes = Column(Integer, nullable=True)


class FoodCategory(BaseModel):
    """Link from a food to one of its parent categories."""

    __tablename__ = "foods_categories"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False)
    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("food_id", "category_id", name="uq_food_category"),
        Index("idx_food_category_category", "category_id"),
    )


class FoodPortionSizeMethod(BaseModel):
    """
    One portion size estimation method offered for a food.

    Attributes:
        method: Variant tag (e.g. "as-served", "standard-portion")
        description: Prompt description key
        conversion_factor: Multiplier applied to the estimated weight
        use_for_recipes: Whether the method applies when used as an ingredient
        order_by: Position in the food's method list
        parameters: Variant-specific parameters keyed by parameter name
    """

    __tablename__ = "food_portion_size_methods"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False)
    method = Column(String(32), nullable=False)
    description = Column(String(256), nullable=False)
    conversion_factor = Column(Float, nullable=False, default=1.0)
    use_for_recipes = Column(Boolean, nullable=False, default=False)
    order_by = Column(Integer, nullable=False)
    parameters = Column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("idx_food_psm_food_order", "food_id", "order_by"),)


class AssociatedFood(BaseModel):
    """
    A follow-up prompt linking a food to another food or to a category.

    Exactly one of associated_food_code and associated_category_code is set.
    """

    __tablename__ = "associated_foods"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False)
    associated_food_code = Column(String(64), nullable=True)
    associated_category_code = Column(String(64), nullable=True)
    text = Column(JSON, nullable=False, default=dict)
    generic_name = Column(JSON, nullable=False, default=dict)
    link_as_main = Column(Boolean, nullable=False, default=False)
    multiple = Column(Boolean, nullable=False, default=False)
    order_by = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "(associated_food_code IS NULL) <> (associated_category_code IS NULL)",
            name="ck_associated_food_single_target",
        ),
        Index("idx_associated_food_food_order", "food_id", "order_by"),
    )


class FoodNutrient(BaseModel):
    """Mapping from a food to a nutrient table record."""

    __tablename__ = "foods_nutrients"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False)
    nutrient_table_record_id = Column(
        Integer, ForeignKey("nutrient_table_records.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("food_id", "nutrient_table_record_id", name="uq_food_nutrient"),
    )


class Brand(BaseModel):
    """A brand name offered for a food."""

    __tablename__ = "brands"

    food_id = Column(Integer, ForeignKey("foods.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(128), nullable=False)

    __table_args__ = (Index("idx_brand_food", "food_id"),)
