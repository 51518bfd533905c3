"""
msvckit - lock-file driven installer for MSVC toolchain components.

Resolves vendor manifest packages into a pinned payload list, fetches the
payloads into a content-addressed cache and installs them with crash-safe
recovery.
"""

__version__ = "0.1.0"
