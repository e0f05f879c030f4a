"""
Catalog of installable applications.
"""

from .models import (
    CatalogEntry,
    DownloadDescriptor,
    InstallerKind,
    UrlKind,
    vendor_product_code,
)
from .loader import (
    Catalog,
    load_catalog,
    parse_catalog,
    parse_entry,
    parse_download,
)

__all__ = [
    "CatalogEntry",
    "DownloadDescriptor",
    "InstallerKind",
    "UrlKind",
    "vendor_product_code",
    "Catalog",
    "load_catalog",
    "parse_catalog",
    "parse_entry",
    "parse_download",
]
