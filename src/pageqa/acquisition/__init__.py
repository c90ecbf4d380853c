"""Content acquisition stage."""

from .service import AcquisitionConfig, ContentAcquirer, classify_content_type, extract_body_text

__all__ = ["AcquisitionConfig", "ContentAcquirer", "classify_content_type", "extract_body_text"]
