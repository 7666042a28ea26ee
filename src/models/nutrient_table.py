"""
Nutrient table models.

Nutrient tables are global (not locale scoped). Foods reference a record by
the pair (nutrient table code, record id), e.g. ("NDNS", "1234").
"""

from sqlalchemy import Column, ForeignKey, String, UniqueConstraint

from .base import BaseModel


class NutrientTable(BaseModel):
    """A nutrient composition table (e.g. "NDNS")."""

    __tablename__ = "nutrient_tables"

    code = Column(String(32), nullable=False, unique=True, index=True)
    description = Column(String(512), nullable=False)


class NutrientTableRecord(BaseModel):
    """
    One record in a nutrient table.

    Attributes:
        nutrient_table_code: Owning table code
        record_id: Record identifier within the table
        name: Record description
        local_name: Optional description in the locale language
    """

    __tablename__ = "nutrient_table_records"

    nutrient_table_code = Column(
        String(32), ForeignKey("nutrient_tables.code", ondelete="CASCADE"), nullable=False
    )
    record_id = Column(String(64), nullable=False)
    name = Column(String(512), nullable=False)
    local_name = Column(String(512), nullable=True)

    __table_args__ = (
        UniqueConstraint("nutrient_table_code", "record_id", name="uq_nutrient_table_record"),
    )
