"""
Step Fusion

Rewrites a step sequence into an equivalent, shorter one. The only rule:
Normalize immediately followed by LayoutPermute becomes a single
NormalizeAndPermute, which also has an accelerated kernel.
"""

import logging
from typing import List, Sequence, Tuple

from preproc.processing.steps import (
    LayoutPermute,
    Normalize,
    NormalizeAndPermute,
    Step,
    step_name,
)

logger = logging.getLogger(__name__)


def fuse_transforms(steps: Sequence[Step]) -> Tuple[Step, ...]:
    """
    Fuse adjacent steps where an equivalent combined step exists.

    Only textually adjacent pairs in exactly that order are fused; steps
    are never reordered.

    Args:
        steps: Ordered step sequence

    Returns:
        Ordered step sequence, unchanged if nothing could be fused

    Example:
        >>> steps = [Normalize((0.5,), (0.5,)), LayoutPermute()]
        >>> fuse_transforms(steps)
        (NormalizeAndPermute(mean=(0.5,), std=(0.5,)),)
    """
    fused: List[Step] = []
    i = 0
    while i < len(steps):
        current = steps[i]
        following = steps[i + 1] if i + 1 < len(steps) else None

        if isinstance(current, Normalize) and isinstance(following, LayoutPermute):
            fused.append(NormalizeAndPermute(mean=current.mean, std=current.std))
            i += 2
            continue

        fused.append(current)
        i += 1

    if len(fused) != len(steps):
        logger.debug(
            "Fused %d steps into %d",
            len(steps),
            len(fused),
            extra={"steps": [step_name(step) for step in fused]},
        )

    return tuple(fused)
