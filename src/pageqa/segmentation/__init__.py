"""Text segmentation stage."""

from .service import MAX_CHUNK_LENGTH, SegmentationConfig, Segmenter, parse_segmentation

__all__ = ["MAX_CHUNK_LENGTH", "SegmentationConfig", "Segmenter", "parse_segmentation"]
