"""Archive document: an ordered set of named sections of typed content nodes.

Loaded from and saved to a JSON file. Saves are atomic (temp file + rename)
so a crash mid-write never leaves a truncated document behind.
"""

import json
import logging
import os
import tempfile
from pathlib import Path

from threadkeep.schemas.archive import (
    ArchiveDocumentData,
    Banner,
    BlockMarker,
    Heading,
    ListItem,
    Node,
    Paragraph,
    Section,
)

logger = logging.getLogger(__name__)


class ArchiveDocument:
    """File-backed container of destination sections.

    Usage::

        doc = ArchiveDocument.load("data/archive.json")
        section = doc.get_section("CVS Work")
        section.nodes = upsert_block(section.nodes, ...)
        doc.save()
    """

    def __init__(self, data: ArchiveDocumentData, path: Path) -> None:
        self._data = data
        self._path = path

    @classmethod
    def load(cls, path: str | Path) -> "ArchiveDocument":
        """Load a document. A missing file yields an empty document."""
        path = Path(path)
        if not path.exists():
            logger.info("Archive document not found at %s, starting empty", path)
            return cls(ArchiveDocumentData(), path)
        data = ArchiveDocumentData.model_validate_json(path.read_text())
        logger.debug("Loaded archive document %s: %d section(s)", path, len(data.sections))
        return cls(data, path)

    @property
    def sections(self) -> list[Section]:
        return self._data.sections

    def get_section(self, title: str) -> Section | None:
        """Case-insensitive lookup by title."""
        wanted = title.lower()
        for section in self._data.sections:
            if section.title.lower() == wanted:
                return section
        return None

    def add_section(self, title: str) -> Section:
        """Create an empty section. Raises ValueError if the title is taken."""
        if self.get_section(title) is not None:
            raise ValueError(f"Section already exists: {title}")
        section = Section(title=title)
        self._data.sections.append(section)
        return section

    def save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        content = json.dumps(self._data.model_dump(mode="json"), indent=2) + "\n"

        fd, tmp_path = tempfile.mkstemp(dir=str(self._path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_path, str(self._path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


def render_node(node: Node) -> str:
    """Markdown for one node. Block markers become plain dividers."""
    if isinstance(node, BlockMarker):
        return "---"
    if isinstance(node, Banner):
        return f"### **{node.text}**"
    if isinstance(node, Heading):
        text = f"[{node.text}]({node.link})" if node.link else node.text
        return f"{'#' * node.level} {text}"
    if isinstance(node, ListItem):
        return f"- [ ] {node.text}" if node.checkbox else f"- {node.text}"
    if isinstance(node, Paragraph):
        text = f"[{node.text}]({node.link})" if node.link else node.text
        return f"**{text}**" if node.bold and text else text
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def render_markdown(section: Section) -> str:
    lines = [f"# {section.title}", ""]
    lines.extend(render_node(node) for node in section.nodes)
    return "\n".join(lines) + "\n"
