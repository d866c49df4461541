"""
unichat - Text Accumulator

Merges adjacent text signals into single TextBlocks.
"""

from typing import Dict, Hashable, List

from ..core.models import Block, TextBlock


def append_text(blocks: List[Block], text: str) -> None:
    """
    Append text, merging into a trailing TextBlock.

    Empty text is a no-op; an empty block is never created.
    """
    if not text:
        return

    if blocks and isinstance(blocks[-1], TextBlock):
        blocks[-1].text += text
    else:
        blocks.append(TextBlock(text=text))


def flatten(blocks: List[Block]) -> str:
    """Concatenate the text of every TextBlock in order."""
    return "".join(b.text for b in blocks if isinstance(b, TextBlock))


class TextDeliveryLedger:
    """
    Tracks text already delivered per vendor content key.

    Some vendors send incremental deltas and then repeat the whole text in a
    "done" event. The ledger turns that cumulative text back into the
    undelivered suffix.
    """

    def __init__(self):
        self._delivered: Dict[Hashable, str] = {}

    def record(self, key: Hashable, fragment: str) -> None:
        """Note that a fragment for `key` was delivered."""
        self._delivered[key] = self._delivered.get(key, "") + fragment

    def missing_suffix(self, key: Hashable, cumulative: str) -> str:
        """
        Return the part of `cumulative` not yet delivered, and record it.

        If the cumulative text does not extend what was delivered, nothing
        is returned since delivered text cannot be taken back.
        """
        delivered = self._delivered.get(key, "")
        if not cumulative.startswith(delivered):
            return ""

        suffix = cumulative[len(delivered):]
        if suffix:
            self.record(key, suffix)
        return suffix

    def delivered(self, key: Hashable) -> str:
        return self._delivered.get(key, "")
