"""Image catalog package."""

from .builder import build_catalog, find_entry, repair_selection
from .discovery import IMAGE_EXTENSIONS, LocalFolderScanner, is_image_name
from .handles import HandleError, HandleRegistry
from .models import LOCAL_SOURCE, NEXTCLOUD_SOURCE, ImageEntry

__all__ = [
    "IMAGE_EXTENSIONS",
    "LOCAL_SOURCE",
    "NEXTCLOUD_SOURCE",
    "HandleError",
    "HandleRegistry",
    "ImageEntry",
    "LocalFolderScanner",
    "build_catalog",
    "find_entry",
    "is_image_name",
    "repair_selection",
]
