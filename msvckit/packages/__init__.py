"""
Package identity and vendor manifest classification.
"""

from .identity import PackageKind, TargetPackage, insert_sorted
from .classifier import (
    Language,
    PayloadKind,
    PayloadUrlKind,
    classify_package,
    classify_payload_filename,
    decide_install,
)
from .manifest import (
    ChannelKind,
    ManifestUpdate,
    Payload,
    VendorPackage,
    VendorPackages,
    parse_vendor_manifest,
)

__all__ = [
    "PackageKind",
    "TargetPackage",
    "insert_sorted",
    "Language",
    "PayloadKind",
    "PayloadUrlKind",
    "classify_package",
    "classify_payload_filename",
    "decide_install",
    "ChannelKind",
    "ManifestUpdate",
    "Payload",
    "VendorPackage",
    "VendorPackages",
    "parse_vendor_manifest",
]
