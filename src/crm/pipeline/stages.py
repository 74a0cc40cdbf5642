"""Pipeline stage state machine.

Deals move along the forward chain

    Lead -> Qualified -> Proposal -> Negotiation -> Closed Won

one step at a time via next_stage/previous_stage, or jump to any stage
directly (drag-and-drop on the pipeline board). Closed Lost is a side-state
outside the chain: it is reachable from anywhere but has no next or previous
stage.

Changing a deal's stage suggests a new win probability from
STAGE_PROBABILITIES. The suggestion is a default, not an invariant -- callers
may set probability independently of stage.
"""

from __future__ import annotations

from src.crm.records.errors import CRMError
from src.crm.records.schemas import DealStage

# ── Stage Order ─────────────────────────────────────────────────────────────

FORWARD_STAGES: tuple[DealStage, ...] = (
    DealStage.LEAD,
    DealStage.QUALIFIED,
    DealStage.PROPOSAL,
    DealStage.NEGOTIATION,
    DealStage.CLOSED_WON,
)

ALL_STAGES: tuple[DealStage, ...] = (*FORWARD_STAGES, DealStage.CLOSED_LOST)

CLOSED_STAGES: frozenset[DealStage] = frozenset(
    {DealStage.CLOSED_WON, DealStage.CLOSED_LOST}
)

# Suggested win probability (percent) applied when a deal changes stage.
STAGE_PROBABILITIES: dict[DealStage, int] = {
    DealStage.LEAD: 10,
    DealStage.QUALIFIED: 30,
    DealStage.PROPOSAL: 50,
    DealStage.NEGOTIATION: 70,
    DealStage.CLOSED_WON: 100,
    DealStage.CLOSED_LOST: 0,
}


class InvalidStageError(CRMError, ValueError):
    """Raised when a stage is unrecognized or a move along the chain is impossible."""

    def __init__(self, stage: object, reason: str | None = None) -> None:
        self.stage = stage
        label = stage.value if isinstance(stage, DealStage) else stage
        if reason is None:
            allowed = ", ".join(s.value for s in ALL_STAGES)
            reason = f"expected one of: {allowed}"
        super().__init__(f"Invalid stage {label!r}: {reason}")


def parse_stage(value: DealStage | str) -> DealStage:
    """Resolve a stage value to a DealStage.

    Accepts DealStage members and their values, case-insensitively and with
    ``_`` or ``-`` standing in for spaces ("closed_won", "CLOSED-WON").

    Raises:
        InvalidStageError: If the value names no stage.
    """
    if isinstance(value, DealStage):
        return value
    try:
        return DealStage(value)
    except ValueError:
        raise InvalidStageError(value) from None


def next_stage(stage: DealStage | str) -> DealStage | None:
    """Stage immediately after ``stage`` on the forward chain.

    Returns None at Closed Won (end of chain) and for Closed Lost.
    """
    current = parse_stage(stage)
    if current not in FORWARD_STAGES:
        return None
    idx = FORWARD_STAGES.index(current)
    if idx >= len(FORWARD_STAGES) - 1:
        return None
    return FORWARD_STAGES[idx + 1]


def previous_stage(stage: DealStage | str) -> DealStage | None:
    """Stage immediately before ``stage`` on the forward chain.

    Returns None at Lead (start of chain) and for Closed Lost.
    """
    current = parse_stage(stage)
    if current not in FORWARD_STAGES:
        return None
    idx = FORWARD_STAGES.index(current)
    if idx == 0:
        return None
    return FORWARD_STAGES[idx - 1]


def default_probability(stage: DealStage | str) -> int:
    """Suggested win probability, in percent, for a deal entering ``stage``."""
    return STAGE_PROBABILITIES[parse_stage(stage)]


def is_closed(stage: DealStage | str) -> bool:
    return parse_stage(stage) in CLOSED_STAGES
