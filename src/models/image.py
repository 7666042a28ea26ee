"""
Portion size image asset models.

These are global assets referenced by portion size method parameters:
- As served sets (photo series of increasing portion weights)
- Image maps (a base image with selectable outlined objects)
- Guide images (an image map whose objects carry weights)
- Drinkware sets (an image map selecting a glass, plus fill scales)

All assets use a natural string key ("code") which is what portion size
parameters refer to. Image files are referenced by their path relative to
the image store.
"""

from sqlalchemy import JSON, Column, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel


class SourceImage(BaseModel):
    """An uploaded image file in the image store."""

    __tablename__ = "source_images"

    path = Column(String(512), nullable=False, unique=True)

    keywords = relationship(
        "SourceImageKeyword", cascade="all, delete-orphan", passive_deletes=True
    )


class SourceImageKeyword(BaseModel):
    """A search keyword attached to a source image."""

    __tablename__ = "source_image_keywords"

    source_image_id = Column(
        Integer, ForeignKey("source_images.id", ondelete="CASCADE"), nullable=False
    )
    keyword = Column(String(128), nullable=False)


# ============================================================================
# As served
# ============================================================================


class AsServedSet(BaseModel):
    """
    A series of portion photos.

    Attributes:
        code: Set identifier referenced by as-served parameters
        description: Internal description
        label: Optional translated label ({"en": "Chips"})
        selection_image_id: Image shown when choosing between sets
    """

    __tablename__ = "as_served_sets"

    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(256), nullable=False)
    label = Column(JSON, nullable=True)
    selection_image_id = Column(Integer, ForeignKey("source_images.id"), nullable=False)

    selection_image = relationship("SourceImage")
    images = relationship(
        "AsServedImage",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="AsServedImage.weight",
    )


class AsServedImage(BaseModel):
    """One photo of an as served set with the weight it depicts."""

    __tablename__ = "as_served_images"

    as_served_set_id = Column(
        Integer, ForeignKey("as_served_sets.id", ondelete="CASCADE"), nullable=False
    )
    source_image_id = Column(Integer, ForeignKey("source_images.id"), nullable=False)
    weight = Column(Float, nullable=False)
    label = Column(JSON, nullable=True)

    source_image = relationship("SourceImage")


# ============================================================================
# Image maps and guide images
# ============================================================================


class ImageMap(BaseModel):
    """A base image with selectable outlined regions."""

    __tablename__ = "image_maps"

    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(512), nullable=False)
    base_image_id = Column(Integer, ForeignKey("source_images.id"), nullable=False)

    base_image = relationship("SourceImage")
    objects = relationship(
        "ImageMapObject", cascade="all, delete-orphan", passive_deletes=True
    )


class ImageMapObject(BaseModel):
    """
    One selectable region of an image map.

    Attributes:
        object_id: Region number, unique within the map
        outline_coordinates: Flat list of polygon coordinates [x0, y0, x1, y1, ...]
    """

    __tablename__ = "image_map_objects"

    image_map_id = Column(
        Integer, ForeignKey("image_maps.id", ondelete="CASCADE"), nullable=False
    )
    object_id = Column(Integer, nullable=False)
    description = Column(String(512), nullable=False)
    navigation_index = Column(Integer, nullable=False)
    outline_coordinates = Column(JSON, nullable=False, default=list)

    __table_args__ = (
        UniqueConstraint("image_map_id", "object_id", name="uq_image_map_object"),
    )


class GuideImage(BaseModel):
    """An image map whose objects carry a portion weight each."""

    __tablename__ = "guide_images"

    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(512), nullable=False)
    image_map_code = Column(String(64), ForeignKey("image_maps.code"), nullable=False)
    label = Column(JSON, nullable=True)

    objects = relationship(
        "GuideImageObject", cascade="all, delete-orphan", passive_deletes=True
    )


class GuideImageObject(BaseModel):
    """Weight of one image map object within a guide image."""

    __tablename__ = "guide_image_objects"

    guide_image_id = Column(
        Integer, ForeignKey("guide_images.id", ondelete="CASCADE"), nullable=False
    )
    image_map_object_id = Column(Integer, nullable=False)
    weight = Column(Float, nullable=False)


# ============================================================================
# Drinkware
# ============================================================================


class DrinkwareSet(BaseModel):
    """A choice of glasses/cups, each with its own fill scale."""

    __tablename__ = "drinkware_sets"

    code = Column(String(64), nullable=False, unique=True, index=True)
    description = Column(String(512), nullable=False)
    image_map_code = Column(String(64), ForeignKey("image_maps.code"), nullable=False)
    label = Column(JSON, nullable=True)


class DrinkwareScale(BaseModel):
    """Version 1 fill scale: overlay image with sampled fill volumes."""

    __tablename__ = "drinkware_scales"

    drinkware_set_id = Column(
        Integer, ForeignKey("drinkware_sets.id", ondelete="CASCADE"), nullable=False
    )
    choice_id = Column(Integer, nullable=False)
    label = Column(Text, nullable=False, default="")
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)
    empty_level = Column(Integer, nullable=False)
    full_level = Column(Integer, nullable=False)
    base_image_path = Column(String(512), nullable=False)
    overlay_image_path = Column(String(512), nullable=False)

    volume_samples = relationship(
        "DrinkwareVolumeSample",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="DrinkwareVolumeSample.fill",
    )


class DrinkwareVolumeSample(BaseModel):
    """Volume at a given fill level of a version 1 scale."""

    __tablename__ = "drinkware_volume_samples"

    drinkware_scale_id = Column(
        Integer, ForeignKey("drinkware_scales.id", ondelete="CASCADE"), nullable=False
    )
    fill = Column(Float, nullable=False)
    volume = Column(Float, nullable=False)


class DrinkwareScaleV2(BaseModel):
    """Version 2 fill scale: outlined base image with a volume model."""

    __tablename__ = "drinkware_scales_v2"

    drinkware_set_id = Column(
        Integer, ForeignKey("drinkware_sets.id", ondelete="CASCADE"), nullable=False
    )
    choice_id = Column(Integer, nullable=False)
    label = Column(JSON, nullable=False, default=dict)
    base_image_id = Column(Integer, ForeignKey("source_images.id"), nullable=False)
    outline_coordinates = Column(JSON, nullable=False, default=list)
    volume_samples = Column(JSON, nullable=False, default=list)
    volume_method = Column(String(16), nullable=False, default="lookUpTable")

    base_image = relationship("SourceImage")
