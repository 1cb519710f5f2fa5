"""Link extraction from markdown text."""

from .links import LinkScanner, scan_document
from .regions import Region, mask_regions, math_regions

__all__ = ["LinkScanner", "Region", "mask_regions", "math_regions", "scan_document"]
