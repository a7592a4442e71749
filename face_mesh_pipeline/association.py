"""
Association of new detector boxes with tracked ROI slots.

Candidate i is compared only with the ROI currently in slot i; there is
no nearest-neighbour or bipartite matching. If the two overlap with an
IOU above the threshold the tracked ROI is kept unchanged (sticky
tracking, suppresses detector jitter). Otherwise the candidate takes the
slot. Slots beyond the number of candidates are dropped.

If face ordering changes between detector runs, slot identity can swap.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence

from face_mesh_pipeline.box import Box, intersection_over_union
from face_mesh_pipeline.slots import ORIGIN_DETECTOR, RoiSlots, TrackedRoi

logger = logging.getLogger(__name__)

DEFAULT_IOU_THRESHOLD = 0.25


@dataclass(frozen=True, slots=True)
class SlotDecision:
    """Outcome of associating one candidate with its slot."""

    slot: int
    iou: float
    kept: bool


def associate_decisions(
    slots: RoiSlots,
    candidates: Sequence[Box],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> List[SlotDecision]:
    """Update slots from detector candidates and report each decision.

    Every ROI superseded or dropped here is released before returning.

    Args:
        slots: The tracked ROI slots, mutated in place.
        candidates: Enlarged detector boxes, in detector order. Must not
                    exceed slots.max_faces.
        iou_threshold: Overlap above which the tracked ROI is kept.

    Returns:
        One SlotDecision per candidate, in slot order.
    """
    decisions: List[SlotDecision] = []

    for i, candidate in enumerate(candidates):
        previous = slots.get(i)
        iou = 0.0
        if previous is not None:
            iou = intersection_over_union(candidate, previous.box)

        kept = iou > iou_threshold
        if not kept:
            if previous is None:
                slots.seed(i, candidate, ORIGIN_DETECTOR)
            else:
                slots.replace(i, candidate, ORIGIN_DETECTOR).release()

        logger.debug("Slot %d: iou=%.3f kept=%s", i, iou, kept)
        decisions.append(SlotDecision(slot=i, iou=iou, kept=kept))

    for dropped in slots.truncate(len(candidates)):
        dropped.release()

    return decisions


def associate(
    slots: RoiSlots,
    candidates: Sequence[Box],
    iou_threshold: float = DEFAULT_IOU_THRESHOLD,
) -> List[TrackedRoi]:
    """Update slots from detector candidates and return the active ROIs."""
    associate_decisions(slots, candidates, iou_threshold)
    return list(slots)
