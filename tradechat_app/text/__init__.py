"""Text transforms applied to model output before display."""

from .jargon import JargonFilter, JargonRule, clean_jargon
from .markdown import MarkdownRenderer, highlight, render_markdown

__all__ = [
    "JargonFilter",
    "JargonRule",
    "clean_jargon",
    "MarkdownRenderer",
    "highlight",
    "render_markdown",
]
