"""
Score modalities and their per-variant policy.

PRODE computes one of two scores:

    NIE  Neighborhood-Informed Essential score. The gene-level signal is the
         intercept of the per-gene fit, i.e. the average score across samples.
    NICE Neighborhood-Informed Context-Essential score. The gene-level signal
         is the coefficient of the group indicator, i.e. the case - control
         difference.

Everything that differs between the two lives in MODALITY_POLICIES so the
pipeline stages look up behavior instead of branching on the modality.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

__all__ = ['Modality', 'ModalityPolicy', 'MODALITY_POLICIES', 'get_policy']


class Modality(Enum):
    """Type of score computed by a PRODE run."""

    NIE = "NIE_score"
    NICE = "NICE_score"

    @classmethod
    def parse(cls, value: str | Modality) -> Modality:
        """Accept a Modality, its name ("NIE") or its value ("NIE_score")."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.upper() == member.name or text == member.value:
                return member
        raise ValueError(
            f"Unknown modality '{value}'. Expected one of: "
            f"{', '.join(m.name for m in cls)}"
        )


@dataclass(frozen=True)
class ModalityPolicy:
    """Per-modality behavior table.

    Attributes:
        differential: Whether samples are split into case/control groups.
        estimate: Which design column supplies the gene-level estimate,
            "intercept" or "group".
        allows_filter_ctrl: If False, filter_ctrl is forced off.
        allows_extended_stats: If False, extended_stats is forced off.
        score_column: Name of the composite score column in the result table.
    """

    differential: bool
    estimate: str
    allows_filter_ctrl: bool
    allows_extended_stats: bool
    score_column: str


MODALITY_POLICIES: dict[Modality, ModalityPolicy] = {
    Modality.NIE: ModalityPolicy(
        differential=False,
        estimate="intercept",
        allows_filter_ctrl=False,
        allows_extended_stats=False,
        score_column="NIE_score",
    ),
    Modality.NICE: ModalityPolicy(
        differential=True,
        estimate="group",
        allows_filter_ctrl=True,
        allows_extended_stats=True,
        score_column="NICE_score",
    ),
}


def get_policy(modality: Modality | str) -> ModalityPolicy:
    """Return the policy for a modality (name or member)."""
    return MODALITY_POLICIES[Modality.parse(modality)]
