from dataclasses import dataclass
from enum import Enum

from estimator import SizeEstimate


class ProcessingMode(str, Enum):
    SINGLE_PASS = "single_pass"
    BATCH = "batch"


def select_mode(estimate: SizeEstimate, single_pass_ceiling: int, safety_margin: int) -> ProcessingMode:
    """Single pass iff document + prompt + margin fits under the ceiling."""
    if estimate.total + safety_margin <= single_pass_ceiling:
        return ProcessingMode.SINGLE_PASS
    return ProcessingMode.BATCH


@dataclass(frozen=True)
class DocumentStrategy:
    """Mode decision plus how much of the single-pass ceiling the document uses."""
    mode: ProcessingMode
    utilization_ratio: float
    headroom_tokens: int

    @staticmethod
    def determine(estimate: SizeEstimate, single_pass_ceiling: int, safety_margin: int) -> 'DocumentStrategy':
        required = estimate.total + safety_margin
        return DocumentStrategy(
            mode=select_mode(estimate, single_pass_ceiling, safety_margin),
            utilization_ratio=required / single_pass_ceiling,
            headroom_tokens=single_pass_ceiling - required,
        )
