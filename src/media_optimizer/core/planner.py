"""Transformation plan construction."""

from typing import Optional

from .models import CompositeOperation, TransformationPlan, WatermarkSpec

SUPPORTED_SUBTYPES = frozenset({"jpeg", "jpg", "png", "webp", "avif"})


def is_supported_type(mime_type: Optional[str]) -> bool:
    """True for ``image/<subtype>`` where the subtype is optimizable."""
    if not mime_type:
        return False
    maintype, _, subtype = mime_type.lower().partition("/")
    subtype = subtype.split(";")[0].strip()
    return maintype.strip() == "image" and subtype in SUPPORTED_SUBTYPES


# encodable output format -> canonical image subtype
OUTPUT_FORMATS = {
    "avif": "avif",
    "webp": "webp",
    "png": "png",
    "jpeg": "jpeg",
    "jpg": "jpeg",
}


def canonical_format(output_format: str) -> Optional[str]:
    """Canonical name of an encodable format, or None if it cannot be encoded."""
    return OUTPUT_FORMATS.get(output_format.strip().lower())


def output_mime_type(output_format: str) -> str:
    fmt = output_format.strip().lower()
    return f"image/{OUTPUT_FORMATS.get(fmt, fmt)}"


def build_plan(
    mime_type: Optional[str],
    quality: int,
    max_size: int,
    watermark: Optional[WatermarkSpec],
    output_format: str = "avif",
) -> Optional[TransformationPlan]:
    """
    Build the transformation for a file of type ``mime_type``.

    Args:
        mime_type: Declared MIME type of the original
        quality: Encoder quality, 0-100
        max_size: Side of the square bounding box
        watermark: Watermark to composite at the center, if any
        output_format: Target codec

    Returns:
        The plan, or None when the type is not optimizable
    """
    if not is_supported_type(mime_type):
        return None

    composites = ()
    if watermark is not None:
        composites = (CompositeOperation(input_path=watermark.path, gravity="center"),)

    return TransformationPlan(
        output_format=output_format.lower(),
        quality=quality,
        max_width=max_size,
        max_height=max_size,
        fit="inside",
        without_enlargement=True,
        keep_metadata=True,
        composites=composites,
    )
