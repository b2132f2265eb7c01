"""Gap detection over a session's received sequence numbers."""

from typing import Iterable, List

from ..errors import InvalidInputError
from ..models import GapReport


def detect_gaps(sequences: Iterable[int]) -> GapReport:
    """Compute which sequence numbers in ``0..max`` have not arrived.

    Sequence numbers are treated as a dense range starting at 0, so any
    hole below the highest received seq is reported. Duplicates in the
    input are ignored. Runs in O(max_seq + n).

    Args:
        sequences: Sequence numbers currently stored for a session

    Returns:
        GapReport with missing seqs in ascending order
    """
    present = set()
    for seq in sequences:
        if isinstance(seq, bool) or not isinstance(seq, int) or seq < 0:
            raise InvalidInputError(f"Invalid chunk sequence number: {seq!r}")
        present.add(seq)

    if not present:
        return GapReport(missing=[], max_seq=-1, total_chunks=0, expected_chunks=0, complete=True)

    max_seq = max(present)
    missing: List[int] = [seq for seq in range(max_seq + 1) if seq not in present]

    return GapReport(
        missing=missing,
        max_seq=max_seq,
        total_chunks=len(present),
        expected_chunks=max_seq + 1,
        complete=not missing,
    )
