"""Write translated batch payloads back onto their text nodes."""

from __future__ import annotations

from .structures import Batch, WriteReport


def reconcile(batch: Batch, result: str) -> WriteReport:
    """Split ``result`` on the batch delimiter and write each segment back.

    When the segment count does not match the batch size, the whole result is
    written to the first unit only and every other unit keeps its text.
    """

    segments = result.split(batch.delimiter)
    expected = len(batch)

    if len(segments) == expected:
        for unit, segment in zip(batch.units, segments):
            unit.owner.write(segment.strip())
        return WriteReport(
            batch_id=batch.batch_id,
            written=expected,
            expected_segments=expected,
            received_segments=len(segments),
        )

    if batch.units:
        batch.units[0].owner.write(result)
    warning = (
        f"Batch {batch.batch_id}: expected {expected} segments but received "
        f"{len(segments)}. Applied the whole translation to the first text node."
    )
    return WriteReport(
        batch_id=batch.batch_id,
        written=1 if batch.units else 0,
        expected_segments=expected,
        received_segments=len(segments),
        warning=warning,
    )
