"""
Tracked ROI slots — the pipeline's cross-frame state.

Responsibility:
    Hold one TrackedRoi per active slot (0 .. max_faces - 1) and expose
    every slot transition as an explicit operation:

        seed     ABSENT  -> occupied (next free slot only)
        replace  occupied -> occupied, returns the previous occupant
        truncate occupied -> ABSENT for every slot >= count
        clear    every slot -> ABSENT

    Operations that supersede an occupant hand it back to the caller,
    which must release it exactly once. Releasing twice raises.

Non-goals:
    - No association or gating policy.
    - Not safe for concurrent mutation; the owning pipeline serializes.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from face_mesh_pipeline.box import Box

logger = logging.getLogger(__name__)

ORIGIN_DETECTOR = "detector"
ORIGIN_LANDMARKS = "landmarks"
_VALID_ORIGINS = {ORIGIN_DETECTOR, ORIGIN_LANDMARKS}


@dataclass(eq=False)
class TrackedRoi:
    """A box bound to a slot for the duration of its occupancy.

    Attributes:
        slot: Slot index the ROI occupies.
        box: The tracked region in image coordinates.
        origin: 'detector' if seeded from a detection, 'landmarks' if
                derived from the previous frame's landmarks.
        version: Number of transitions the slot has gone through since
                 it was last seeded.
    """

    slot: int
    box: Box
    origin: str
    version: int = 0
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Mark this ROI as superseded. Must be called exactly once."""
        if self._released:
            raise RuntimeError(
                f"TrackedRoi for slot {self.slot} (version {self.version}) "
                f"was already released."
            )
        self._released = True
        logger.debug(
            "Released ROI slot=%d version=%d origin=%s",
            self.slot, self.version, self.origin,
        )


class RoiSlots:
    """Ordered, bounded collection of tracked ROIs.

    Usage:
        slots = RoiSlots(max_faces=2)
        slots.seed(0, box, ORIGIN_DETECTOR)
        previous = slots.replace(0, new_box, ORIGIN_LANDMARKS)
        previous.release()
    """

    def __init__(self, max_faces: int) -> None:
        if max_faces < 1:
            raise ValueError(f"max_faces must be >= 1, got {max_faces}.")
        self._max_faces = max_faces
        self._rois: List[TrackedRoi] = []

    @property
    def max_faces(self) -> int:
        return self._max_faces

    def __len__(self) -> int:
        return len(self._rois)

    def __iter__(self) -> Iterator[TrackedRoi]:
        return iter(list(self._rois))

    def get(self, index: int) -> Optional[TrackedRoi]:
        """Return the occupant of a slot, or None if the slot is absent."""
        if 0 <= index < len(self._rois):
            return self._rois[index]
        return None

    def boxes(self) -> List[Box]:
        return [roi.box for roi in self._rois]

    def seed(self, index: int, box: Box, origin: str) -> None:
        """Occupy the next free slot.

        Raises:
            IndexError: If index is not the next free slot or the
                        collection already holds max_faces ROIs.
        """
        self._check_origin(origin)
        if index != len(self._rois):
            raise IndexError(
                f"Can only seed the next free slot ({len(self._rois)}), "
                f"got {index}."
            )
        if index >= self._max_faces:
            raise IndexError(
                f"Slot {index} exceeds max_faces={self._max_faces}."
            )
        self._rois.append(TrackedRoi(slot=index, box=box, origin=origin))

    def replace(self, index: int, box: Box, origin: str) -> TrackedRoi:
        """Put a new box into an occupied slot and return the old occupant."""
        self._check_origin(origin)
        previous = self.get(index)
        if previous is None:
            raise IndexError(f"Slot {index} is not occupied.")
        self._rois[index] = TrackedRoi(
            slot=index, box=box, origin=origin, version=previous.version + 1,
        )
        return previous

    def truncate(self, count: int) -> List[TrackedRoi]:
        """Drop every slot at index >= count and return the dropped ROIs."""
        count = max(0, count)
        dropped = self._rois[count:]
        self._rois = self._rois[:count]
        return dropped

    def clear(self) -> List[TrackedRoi]:
        """Drop every slot and return the dropped ROIs."""
        return self.truncate(0)

    @staticmethod
    def _check_origin(origin: str) -> None:
        if origin not in _VALID_ORIGINS:
            raise ValueError(
                f"Invalid ROI origin '{origin}'. Must be one of {_VALID_ORIGINS}."
            )
