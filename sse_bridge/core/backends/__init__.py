"""
Backends
========

Capability surfaces consumed by the bridge, the per-credential instance
cache, and the default HTTP capability provider.
"""

from .cache import BackendInstanceCache, credential_fingerprint
from .capabilities import BackendFactory, BackendInstance, CapabilityAdapter

__all__ = [
    "BackendInstanceCache",
    "credential_fingerprint",
    "BackendFactory",
    "BackendInstance",
    "CapabilityAdapter",
]
