"""Per-run identity and reference resolution."""

from .cache import RunCache
from .identity import IdentityResolver
from .reference import ReferenceResolver

__all__ = ["IdentityResolver", "ReferenceResolver", "RunCache"]
