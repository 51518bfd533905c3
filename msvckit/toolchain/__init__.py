"""
Payload caching, installation and install orchestration.
"""

from .cache import PayloadCache
from .channel import ManifestCache
from .install_manifest import InstallManifest, InstallRecord, InstallState
from .installer import PayloadInstaller
from .manager import ToolchainManager

__all__ = [
    "PayloadCache",
    "ManifestCache",
    "InstallManifest",
    "InstallRecord",
    "InstallState",
    "PayloadInstaller",
    "ToolchainManager",
]
