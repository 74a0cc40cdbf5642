"""Deal pipeline -- stage ordering, navigation, and probability defaults.

Exports:
    FORWARD_STAGES: Linear Lead -> Closed Won chain used for navigation and rollups.
    ALL_STAGES: Every stage a deal may occupy, Closed Lost included.
    InvalidStageError: Raised for unknown stages or impossible moves.
    parse_stage: Resolve a stage value, raising InvalidStageError when unknown.
    next_stage / previous_stage: One-step navigation along the chain.
    default_probability: Suggested win probability (percent) for a stage.
"""

from src.crm.pipeline.stages import (
    ALL_STAGES,
    FORWARD_STAGES,
    STAGE_PROBABILITIES,
    InvalidStageError,
    default_probability,
    is_closed,
    next_stage,
    parse_stage,
    previous_stage,
)

__all__ = [
    "ALL_STAGES",
    "FORWARD_STAGES",
    "STAGE_PROBABILITIES",
    "InvalidStageError",
    "default_probability",
    "is_closed",
    "next_stage",
    "parse_stage",
    "previous_stage",
]
