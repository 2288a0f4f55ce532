"""Product documentation used to answer help questions."""

from zzp_assistant.knowledge.loader import (
    DocSection,
    KnowledgeBase,
    build_context,
    split_sections,
)

__all__ = ["DocSection", "KnowledgeBase", "build_context", "split_sections"]
