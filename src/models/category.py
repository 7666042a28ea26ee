"""
Category models - a locale's category tree and its per-category child rows.

Categories form a DAG: a category may have several parent categories, linked
through CategoryCategory rows.
"""

from sqlalchemy import (
    JSON,
    Boolean,
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


class Category(BaseModel):
    """
    Category model.

    Attributes:
        locale_id: Owning locale code
        code: Natural key, unique per locale
        name: Display name in the locale's language
        english_name: English name
        simple_name: Normalized search name derived from name
        hidden: Hidden categories are not shown to respondents
        tags: Free-form tag list
        version: Opaque token regenerated on every mutation
    """

    __tablename__ = "categories"

    locale_id = Column(
        String(16), ForeignKey("locales.code", ondelete="CASCADE"), nullable=False
    )
    code = Column(String(64), nullable=False)
    name = Column(String(256), nullable=False)
    english_name = Column(String(256), nullable=False)
    simple_name = Column(String(256), nullable=True)
    hidden = Column(Boolean, nullable=False, default=False)
    tags = Column(JSON, nullable=False, default=list)
    version = Column(String(36), nullable=False, default=new_version_token)

    attributes = relationship(
        "CategoryAttributes", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )
    portion_size_methods = relationship(
        "CategoryPortionSizeMethod",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="CategoryPortionSizeMethod.order_by",
    )

    __table_args__ = (
        UniqueConstraint("locale_id", "code", name="uq_category_locale_code"),
        Index("idx_category_locale_code", "locale_id", "code"),
    )


class CategoryAttributes(BaseModel):
    """Inheritable attributes of a category (at most one row per category)."""

    __tablename__ = "category_attributes"

    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    ready_meal_option = Column(Boolean, nullable=True)
    same_as_before_option = Column(Boolean, nullable=True)
    reasonable_amount = Column(Integer, nullable=True)
    use_in_recipes = Column(Integer, nullable=True)


class CategoryCategory(BaseModel):
    """Link from a sub-category to one of its parent categories."""

    __tablename__ = "categories_categories"

    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    sub_category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("category_id", "sub_category_id", name="uq_category_category"),
        Index("idx_category_category_sub", "sub_category_id"),
    )


class CategoryPortionSizeMethod(BaseModel):
    """Portion size method inherited by the foods of a category."""

    __tablename__ = "category_portion_size_methods"

    category_id = Column(
        Integer, ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    method = Column(String(32), nullable=False)
    description = Column(String(256), nullable=False)
    conversion_factor = Column(Float, nullable=False, default=1.0)
    use_for_recipes = Column(Boolean, nullable=False, default=False)
    order_by = Column(Integer, nullable=False)
    parameters = Column(JSON, nullable=False, default=dict)

    __table_args__ = (Index("idx_category_psm_category_order", "category_id", "order_by"),)
