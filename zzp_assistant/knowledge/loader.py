"""
Product Knowledge Base

Answers help questions from the product's own markdown documentation.

DESIGN DECISION: The knowledge base is an object the application builds
once and owns, not a module-level cache. Docs are loaded on first use and
can be reloaded with ``invalidate()``; tests simply build their own
instance over a temporary directory.

Relevance is a plain keyword score:
- +1 when a question word occurs anywhere in the section
- +2 more when it occurs in the section heading
Only words longer than 3 characters count.
"""

import re
from pathlib import Path
from typing import NamedTuple, Optional, Sequence, Union

import structlog


logger = structlog.get_logger(__name__)

DEFAULT_FILES = ("product.md", "features.md", "faq.md", "vat.md")

_SECTION_SPLIT = re.compile(r"^##\s+", re.MULTILINE)


class DocSection(NamedTuple):
    """One ``## heading`` block of a doc file."""
    file: str
    heading: str
    content: str

    @property
    def citation(self) -> str:
        return f"{self.file}: {self.heading}"


def split_sections(file: str, text: str) -> list[DocSection]:
    """
    Chunk one markdown document on its ``##`` headings.

    The text before the first ``##`` only counts when it starts with a
    ``#`` title; empty sections are dropped.
    """
    sections: list[DocSection] = []
    for index, part in enumerate(_SECTION_SPLIT.split(text)):
        if index == 0:
            lines = part.strip().splitlines()
            if lines and lines[0].startswith("# "):
                heading = lines[0].lstrip("#").strip()
                sections.append(DocSection(file, heading, "\n".join(lines[1:]).strip()))
            continue

        lines = part.splitlines()
        heading = lines[0].strip() if lines else ""
        content = "\n".join(lines[1:]).strip()
        if heading and content:
            sections.append(DocSection(file, heading, content))
    return sections


def build_context(sections: Sequence[DocSection]) -> str:
    """Sections as markdown, separated by a blank line."""
    return "\n\n".join(f"## {section.heading}\n{section.content}" for section in sections)


class KnowledgeBase:
    """
    Keyword search over the product docs.

    Usage:
        kb = KnowledgeBase(settings.knowledge.docs_dir, settings.knowledge.files_list)
        sections = kb.find_relevant_sections("Hoe maak ik een factuur?")
    """

    def __init__(
        self,
        docs_dir: Union[str, Path],
        files: Optional[Sequence[str]] = None,
    ):
        self._docs_dir = Path(docs_dir)
        self._files = tuple(files or DEFAULT_FILES)
        self._sections: Optional[list[DocSection]] = None

    def load(self) -> list[DocSection]:
        """All sections of all docs (loaded once, then cached)."""
        if self._sections is not None:
            return self._sections

        sections: list[DocSection] = []
        for file in self._files:
            path = self._docs_dir / file
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("knowledge_file_unreadable", file=str(path), error=str(e))
                continue
            sections.extend(split_sections(file, text))

        self._sections = sections
        return sections

    def invalidate(self) -> None:
        """Forget the loaded docs; the next lookup reads them again."""
        self._sections = None

    def find_relevant_sections(self, question: str, max_sections: int = 3) -> list[DocSection]:
        """Best-scoring sections for a question, highest score first."""
        words = (word.strip("?!.,:;\"'") for word in (question or "").lower().split())
        keywords = [word for word in words if len(word) > 3]
        if not keywords:
            return []

        scored: list[tuple[int, DocSection]] = []
        for section in self.load():
            text = f"{section.heading} {section.content}".lower()
            heading = section.heading.lower()
            score = 0
            for keyword in keywords:
                if keyword in text:
                    score += 1
                if keyword in heading:
                    score += 2
            if score > 0:
                scored.append((score, section))

        # Stable sort keeps document order between equal scores
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [section for _, section in scored[:max_sections]]

    def build_context(self, sections: Sequence[DocSection]) -> str:
        return build_context(sections)
