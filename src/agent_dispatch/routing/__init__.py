"""Requirement extraction and agent recommendation.

Classes:
    RequirementExtractor: Raw request -> TaskRequirements
    Recommender: TaskRequirements -> RecommendationResult
"""

from agent_dispatch.routing.requirements import (
    AttachmentDescriptor,
    RequirementExtractor,
    TaskRequirements,
    classify_attachment,
    extract_fields,
    extract_requirements,
)
from agent_dispatch.routing.recommender import (
    RecommendationResult,
    Recommender,
    ScoredCandidate,
    rank_candidates,
)

__all__ = [
    # Requirements
    "AttachmentDescriptor",
    "RequirementExtractor",
    "TaskRequirements",
    "classify_attachment",
    "extract_fields",
    "extract_requirements",
    # Recommendation
    "RecommendationResult",
    "Recommender",
    "ScoredCandidate",
    "rank_candidates",
]
