"""
DOM snapshot helpers and the element resolver seam
"""
from .resolver import ElementInfo, ElementResolver, RegexElementResolver, ResolverFactory, default_resolver

__all__ = [
    "ElementInfo",
    "ElementResolver",
    "RegexElementResolver",
    "ResolverFactory",
    "default_resolver",
]
