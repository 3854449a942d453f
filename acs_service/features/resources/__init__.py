"""Resources feature: URI pattern registry, resolution and hierarchy."""

from __future__ import annotations

from .hierarchy import HierarchyStore, ResourceRecord, ResourceSnapshot, get_hierarchy_store
from .matching import MatchEngine, MatchPolicy, MatchResult, match_pattern
from .models import Resource
from .patterns import CompiledPattern, PatternError, analyze_pattern, compile_pattern
from .protection import ProtectionLevel, classify
from .repository import ResourceRepository, get_resource_repository
from .schemas import ResourceCreate, ResourceResponse, ResourceUpdate
from .service import ResourceService

__all__ = [
    "CompiledPattern",
    "HierarchyStore",
    "MatchEngine",
    "MatchPolicy",
    "MatchResult",
    "PatternError",
    "ProtectionLevel",
    "Resource",
    "ResourceCreate",
    "ResourceRecord",
    "ResourceRepository",
    "ResourceResponse",
    "ResourceService",
    "ResourceSnapshot",
    "ResourceUpdate",
    "analyze_pattern",
    "classify",
    "compile_pattern",
    "get_hierarchy_store",
    "get_resource_repository",
    "match_pattern",
]
