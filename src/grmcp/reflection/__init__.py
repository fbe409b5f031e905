"""Server reflection — descriptor discovery, resolution, and rendering."""

from grmcp.reflection.client import REFLECTION_SERVICES, ReflectionClient
from grmcp.reflection.printer import render
from grmcp.reflection.resolver import DescriptorSource, classify, full_name

__all__ = [
    "REFLECTION_SERVICES",
    "DescriptorSource",
    "ReflectionClient",
    "classify",
    "full_name",
    "render",
]
