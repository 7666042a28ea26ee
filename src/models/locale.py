"""
Locale model - the partition every food and category belongs to.

A locale is identified by a short code (e.g. "en_GB") which is also the key
foods and categories use to reference it.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, String

from .base import BaseModel


class Locale(BaseModel):
    """
    Locale model representing one food list partition.

    Attributes:
        code: Locale code (e.g. "en_GB"), unique
        english_name: Name in English (e.g. "United Kingdom")
        local_name: Name in the locale's own language
        respondent_language_id: Language shown to survey respondents
        admin_language_id: Language used by food list maintainers
        country_flag_code: Flag icon code (e.g. "gb")
        text_direction: "ltr" or "rtl"
        food_index_enabled: Whether the search index is built for this locale
        food_index_language_backend_id: Search index language backend
    """

    __tablename__ = "locales"

    code = Column(String(16), nullable=False, unique=True, index=True)
    english_name = Column(String(64), nullable=False)
    local_name = Column(String(64), nullable=False)
    respondent_language_id = Column(String(16), nullable=False)
    admin_language_id = Column(String(16), nullable=False)
    country_flag_code = Column(String(16), nullable=False)
    text_direction = Column(String(8), nullable=False, default="ltr")
    food_index_enabled = Column(Boolean, nullable=False, default=True)
    food_index_language_backend_id = Column(String(16), nullable=False, default="en")

    __table_args__ = (
        CheckConstraint("text_direction IN ('ltr', 'rtl')", name="ck_locale_text_direction"),
    )
