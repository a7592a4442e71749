"""
Detection gate for the face mesh pipeline.

Decides, once per frame, whether the full-frame face detector must
run. The detector runs to bootstrap tracking (nothing tracked yet) or,
once tracking has been stable for max_continuous_checks frames, to look
for faces beyond the ones already tracked. A full set of tracked faces
never triggers a rerun.
"""


def needs_detector_run(
    roi_count: int,
    frames_since_detector: int,
    max_faces: int,
    max_continuous_checks: int,
) -> bool:
    """Return True if the face detector should run on this frame.

    Args:
        roi_count: Number of currently tracked ROIs.
        frames_since_detector: Frames processed since the last detector run.
        max_faces: Maximum number of faces the pipeline tracks.
        max_continuous_checks: Track-only frames allowed before looking
                               for additional faces.
    """
    if roi_count == 0:
        return True

    should_check_for_more_faces = (
        roi_count != max_faces
        and frames_since_detector >= max_continuous_checks
    )
    return should_check_for_more_faces
