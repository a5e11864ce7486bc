"""
Tagman Models.

    from tagman.models import Tag, TagConfig, TagBranchCounter
"""

from .config import TagBranchCounter, TagConfig  # noqa: F401
from .tag import Tag  # noqa: F401
