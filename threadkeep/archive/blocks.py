"""Block upsert engine: at most one archived block per thread per section.

A block starts at a ``BlockMarker`` carrying the thread id and runs up to
the next script marker or the end of the section. All functions here are
pure: they take a node list and return a new one.
"""

import logging
from datetime import datetime
from zoneinfo import ZoneInfo

from threadkeep.schemas.archive import (
    Banner,
    BlockMarker,
    Heading,
    ListItem,
    Node,
    Paragraph,
)

logger = logging.getLogger(__name__)

ACTION_ITEMS_LABEL = "Action items"


def format_header_date(moment: datetime, timezone: str) -> str:
    """``MMM dd, yyyy h:mm a TZ`` in the given timezone."""
    local = moment.astimezone(ZoneInfo(timezone))
    hour = local.hour % 12 or 12
    return f"{local:%b %d, %Y} {hour}:{local:%M %p %Z}"


def find_block(nodes: list[Node], thread_id: str) -> int | None:
    """Index of the marker opening the thread's block, or None."""
    for i, node in enumerate(nodes):
        if isinstance(node, BlockMarker) and node.thread_id == thread_id:
            return i
    return None


def count_blocks(nodes: list[Node], thread_id: str) -> int:
    return sum(1 for n in nodes if isinstance(n, BlockMarker) and n.thread_id == thread_id)


def remove_block(nodes: list[Node], thread_id: str) -> tuple[list[Node], bool]:
    """Drop the thread's block: its marker and everything up to the next marker.

    Returns:
        Tuple of (new node list, whether a block was removed).
    """
    start = find_block(nodes, thread_id)
    if start is None:
        return list(nodes), False

    end = len(nodes)
    for i in range(start + 1, len(nodes)):
        node = nodes[i]
        if isinstance(node, BlockMarker) and node.script_entry_marker:
            end = i
            break
    logger.debug("Removing existing block for thread %s (%d node(s))", thread_id, end - start)
    return list(nodes[:start]) + list(nodes[end:]), True


def insertion_index(nodes: list[Node], append_at_top: bool) -> int:
    if not append_at_top:
        return len(nodes)
    if nodes and isinstance(nodes[0], Banner):
        return 1
    return 0


def build_block(
    *,
    thread_id: str,
    header: str,
    link: str,
    summary: str,
    action_lines: list[str],
) -> list[Node]:
    """Render the nodes of one archived thread, marker first."""
    block: list[Node] = [
        BlockMarker(thread_id=thread_id),
        Heading(text=header, link=link or None, level=2),
        # The summary is a fresh paragraph: no link or style carried over.
        Paragraph(text=summary),
    ]
    if action_lines:
        block.append(Paragraph(text=ACTION_ITEMS_LABEL, bold=True))
        block.extend(ListItem(text=line, checkbox=True) for line in action_lines)
    block.append(Paragraph(text=""))
    return block


def upsert_block(nodes: list[Node], block: list[Node], *, append_at_top: bool) -> list[Node]:
    """Replace the thread's existing block (if any) with ``block``.

    ``block[0]`` must be the thread's ``BlockMarker``.
    """
    marker = block[0]
    if not isinstance(marker, BlockMarker):
        raise ValueError("A block must start with a BlockMarker")

    remaining, replaced = remove_block(nodes, marker.thread_id)
    index = insertion_index(remaining, append_at_top)
    if replaced:
        logger.info("Replacing archived block for thread %s", marker.thread_id)
    return remaining[:index] + list(block) + remaining[index:]


def ensure_attention_banner(nodes: list[Node]) -> tuple[list[Node], bool]:
    """Put the attention banner at the top once.

    Returns:
        Tuple of (new node list, whether the banner was added).
    """
    if nodes and isinstance(nodes[0], Banner):
        return list(nodes), False
    return [Banner()] + list(nodes), True
