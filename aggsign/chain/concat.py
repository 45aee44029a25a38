# aggsign/chain/concat.py
import logging
from typing import Iterable, List, Tuple

from aggsign.core.canon import canonicalize
from aggsign.core.types import ByteRange, Concatenation, TypedMessage
from aggsign.errors import CanonicalizationError

logger = logging.getLogger(__name__)


class ConcatenationBuilder:
    """
    Accumulates canonical segments in caller order.
    No deduplication and no reordering: order is part of what gets signed.
    """

    def __init__(self):
        self._segments: List[bytes] = []
        self._ranges: List[ByteRange] = []
        self._offset = 0

    @property
    def length(self) -> int:
        return len(self._ranges)

    def append(self, message: TypedMessage) -> ByteRange:
        """Canonicalize `message`, append it and return its range in the final buffer."""
        segment = canonicalize(message)
        rng = ByteRange(self._offset, self._offset + len(segment))
        self._segments.append(segment)
        self._ranges.append(rng)
        self._offset = rng.end
        logger.debug("Segment #%d (%s) at [%d, %d)", len(self._ranges) - 1, message.primary_type, rng.start, rng.end)
        return rng

    def build(self) -> Concatenation:
        return Concatenation(buffer=b"".join(self._segments), ranges=tuple(self._ranges))


def build(messages: Iterable[TypedMessage]) -> Tuple[Concatenation, List[ByteRange]]:
    """Canonicalize and join `messages` in order; returns the concatenation and its ranges."""
    builder = ConcatenationBuilder()
    for message in messages:
        builder.append(message)
    concat = builder.build()
    return concat, list(concat.ranges)


def find_json_ranges(buffer: bytes) -> List[ByteRange]:
    """
    Recover [start, end) ranges of top-level JSON objects in a concatenated buffer
    by brace matching. Braces inside string literals are ignored, escapes honoured.
    Works on raw bytes: UTF-8 continuation bytes never collide with ASCII syntax.
    """
    ranges: List[ByteRange] = []
    depth = 0
    in_string = False
    escape = False
    start = None

    for idx, ch in enumerate(buffer):
        if in_string:
            if escape:
                escape = False
            elif ch == 0x5C:  # backslash
                escape = True
            elif ch == 0x22:  # quote
                in_string = False
            continue

        if ch == 0x22:
            in_string = True
        elif ch == 0x7B:  # {
            if depth == 0:
                start = idx
            depth += 1
        elif ch == 0x7D:  # }
            if depth == 0:
                raise CanonicalizationError(f"Unmatched closing brace at byte {idx}")
            depth -= 1
            if depth == 0:
                ranges.append(ByteRange(start, idx + 1))
                start = None

    if depth != 0:
        raise CanonicalizationError(f"Unclosed JSON object(s); brace depth at end is {depth}")
    return ranges
