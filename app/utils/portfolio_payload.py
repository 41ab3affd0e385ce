"""
Portfolio payload parser for advisor replies.

The advisor model is told to embed a machine-readable allocation in its free
text reply using this convention:

    Some prose...
    [UPDATE_PORTFOLIO]
    [{"category": "Bonds", "percentage": 40, "description": "..."}, ...]
    More prose...

The parser finds the marker, takes the first bracket-balanced `[...]` span
after it and decodes it as a list of AllocationItem. Parsing failures are
reported through PayloadScan.found rather than raised: a model ignoring the
format is routine.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from pydantic import ValidationError

from agents.advisor_state import Allocation, AllocationItem

logger = logging.getLogger(__name__)

PORTFOLIO_MARKER = "[UPDATE_PORTFOLIO]"


@dataclass(frozen=True)
class PayloadScan:
    """
    Result of scanning a reply for the portfolio payload.

    Attributes:
        found: A marker was present and its array decoded into items
        items: Decoded allocation items (None unless found)
        span: (start, end) of the marker plus payload text in the reply, or
              None when there is no marker at all
    """
    found: bool
    items: Optional[Allocation] = None
    span: Optional[Tuple[int, int]] = None

    def strip_from(self, text: str) -> str:
        """Remove the marker and payload from `text` and tidy surrounding whitespace."""
        if self.span is None:
            return text.strip()
        start, end = self.span
        before = text[:start].rstrip()
        after = text[end:].lstrip()
        if before and after:
            return f"{before}\n\n{after}"
        return (before or after).strip()


def find_array_span(text: str, start: int) -> Optional[Tuple[int, int]]:
    """
    Locate the first bracket-balanced `[...]` at or after `start`.

    Returns:
        (open_index, close_index + 1), or None if no `[` exists or it never closes
    """
    open_index = text.find("[", start)
    if open_index == -1:
        return None

    depth = 0
    for index in range(open_index, len(text)):
        char = text[index]
        if char == "[":
            depth += 1
        elif char == "]":
            depth -= 1
            if depth == 0:
                return open_index, index + 1
    return None


def _decode_items(raw: str) -> Optional[Allocation]:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Portfolio payload is not valid JSON: {e}")
        return None

    if not isinstance(data, list) or not data:
        logger.warning("Portfolio payload is not a non-empty JSON array")
        return None

    items: Allocation = []
    for entry in data:
        if not isinstance(entry, dict) or isinstance(entry.get("percentage"), bool):
            logger.warning(f"Skipping payload: malformed entry {entry!r}")
            return None
        try:
            items.append(AllocationItem(
                category=entry["category"],
                percentage=entry["percentage"],
                description=entry.get("description") or "",
            ))
        except (KeyError, TypeError, ValidationError) as e:
            logger.warning(f"Skipping payload: invalid entry {entry!r}: {e}")
            return None
    return items


def extract_portfolio_payload(reply: str) -> PayloadScan:
    """
    Pull the allocation out of a model reply.

    Args:
        reply: Full free text returned by the completion service

    Returns:
        PayloadScan with found=False when the marker is missing, the array is
        unbalanced, or its contents are not a list of allocation items

    Example:
        scan = extract_portfolio_payload('Done! [UPDATE_PORTFOLIO] [{"category": "Bonds", "percentage": 150}]')
        # scan.found -> True, scan.items -> [AllocationItem(category="Bonds", percentage=150.0, description="")]
    """
    marker_index = reply.find(PORTFOLIO_MARKER)
    if marker_index == -1:
        return PayloadScan(found=False)

    array_span = find_array_span(reply, marker_index + len(PORTFOLIO_MARKER))
    if array_span is None:
        logger.warning("Portfolio marker present but no balanced JSON array follows it")
        # Hide the dangling marker and whatever half-written payload follows it
        return PayloadScan(found=False, span=(marker_index, len(reply)))

    open_index, close_index = array_span
    span = (marker_index, close_index)
    raw = reply[open_index:close_index]
    logger.debug(f"Extracted portfolio JSON: {raw}")

    items = _decode_items(raw)
    if items is None:
        return PayloadScan(found=False, span=span)
    return PayloadScan(found=True, items=items, span=span)
