"""Destination resolver: map a thread's labels to an archive section."""

import logging

from threadkeep.archive.document import ArchiveDocument
from threadkeep.schemas.archive import Section

logger = logging.getLogger(__name__)


def build_destination_index(
    document: ArchiveDocument,
    only: list[str] | None = None,
) -> dict[str, Section]:
    """Lowercased title -> section, optionally restricted to ``only``."""
    index = {section.title.lower(): section for section in document.sections}
    if only is not None:
        wanted = {name.lower() for name in only}
        index = {key: section for key, section in index.items() if key in wanted}
    return index


def label_to_destination_key(label: str, prefix: str) -> str:
    """Strip the configured prefix from a label name.

    Returns an empty string when a prefix is configured and the label
    does not carry it.
    """
    name = label.lower()
    if not prefix:
        return name
    if name.startswith(prefix.lower()):
        return name[len(prefix):]
    return ""


def match_destination(
    labels: list[str],
    index: dict[str, Section],
    prefix: str = "",
) -> Section | None:
    """First section named by one of the labels, in label order."""
    for label in labels:
        key = label_to_destination_key(label, prefix)
        if key and key in index:
            return index[key]
    return None
