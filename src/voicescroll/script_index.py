# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Script indexing: turns reference text into the ordered word sequence that
spoken phrases are located against.

Indices produced here are the currency of the whole engine. The arbiter's
confirmed index, the highlight index and the layout's word positions all
refer to positions in ``ScriptIndex.tokens``, so tokenization must be
deterministic for a given text.
"""

import logging
import unicodedata
from dataclasses import dataclass, field
from html.parser import HTMLParser

import markdown

logger = logging.getLogger(__name__)

# Block-level tags whose boundaries separate words in rendered Markdown
BLOCK_TAGS: frozenset[str] = frozenset([
    'p', 'br', 'li', 'ul', 'ol', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
    'blockquote', 'pre', 'hr', 'div', 'tr', 'td', 'th',
])


def _is_punctuation(char: str) -> bool:
    """Check if a character is in a Unicode punctuation category."""
    return unicodedata.category(char).startswith('P')


def normalize_word(word: str) -> str:
    """Normalize a word for matching (lowercase, strip surrounding punctuation).

    Internal punctuation is kept, so "don't" stays "don't" on both the script
    and the recognizer side.
    """
    word = word.lower().strip()
    start: int = 0
    end: int = len(word)
    while start < end and _is_punctuation(word[start]):
        start += 1
    while end > start and _is_punctuation(word[end - 1]):
        end -= 1
    return word[start:end]


def tokenize(text: str) -> list[str]:
    """Split text on whitespace and normalize each token."""
    return [normalize_word(w) for w in text.split() if w]


@dataclass(frozen=True)
class ScriptIndex:
    """Normalized, positioned word sequence for one prepared script."""
    raw_text: str
    raw_words: tuple[str, ...]  # Tokens as they appear in the text
    tokens: tuple[str, ...]  # Normalized tokens, same length as raw_words
    joined: str = ""  # tokens joined with single spaces
    # Character offset of each token within ``joined``
    boundaries: tuple[int, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.tokens)

    @property
    def last_index(self) -> int:
        """Index of the final word, or -1 for an empty script."""
        return len(self.tokens) - 1

    @property
    def is_empty(self) -> bool:
        """Return True if the script has no words."""
        return not self.tokens

    def phrase(self, start: int, end: int) -> str:
        """Space-joined tokens in [start, end), sliced out of ``joined``."""
        if start >= end:
            return ""
        begin: int = self.boundaries[start]
        if end >= len(self.tokens):
            return self.joined[begin:]
        # boundaries[end] points at the first char of the next word,
        # one past the separating space.
        return self.joined[begin:self.boundaries[end] - 1]

    def clamp(self, index: int) -> int:
        """Clamp an index into the valid word range."""
        if not self.tokens:
            return 0
        return max(0, min(index, self.last_index))


def prepare(raw_text: str) -> ScriptIndex:
    """
    Prepare a script for tracking.

    Splits on whitespace, discards empty tokens, lowercases and strips
    punctuation. A token made only of punctuation (an em dash, say)
    normalizes to "" but keeps its slot so indices line up with the words
    the renderer lays out.

    Args:
        raw_text: The script as the user wrote it

    Returns:
        ScriptIndex for the script
    """
    raw_words: list[str] = [w for w in raw_text.split() if w]
    tokens: list[str] = [normalize_word(w) for w in raw_words]

    boundaries: list[int] = []
    offset: int = 0
    for token in tokens:
        boundaries.append(offset)
        offset += len(token) + 1

    index = ScriptIndex(
        raw_text=raw_text,
        raw_words=tuple(raw_words),
        tokens=tuple(tokens),
        joined=' '.join(tokens),
        boundaries=tuple(boundaries),
    )
    logger.info("Prepared script with %d words", len(index))
    return index


class _VisibleTextParser(HTMLParser):
    """Collects the text a reader would see from rendered HTML."""

    def __init__(self) -> None:
        super().__init__()
        self.parts: list[str] = []

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in BLOCK_TAGS:
            self.parts.append('\n')

    def handle_endtag(self, tag: str) -> None:
        if tag in BLOCK_TAGS:
            self.parts.append('\n')

    def handle_data(self, data: str) -> None:
        self.parts.append(data)

    @property
    def text(self) -> str:
        return ''.join(self.parts)


def markdown_to_text(markdown_text: str) -> str:
    """Render Markdown and return only its visible text."""
    rendered_html: str = markdown.markdown(
        markdown_text,
        extensions=['nl2br', 'sane_lists']
    )
    parser = _VisibleTextParser()
    parser.feed(rendered_html)
    parser.close()
    return parser.text


def prepare_markdown(markdown_text: str) -> ScriptIndex:
    """
    Prepare a Markdown script, tracking the rendered words only.

    Headers, emphasis markers and list bullets are formatting, never spoken,
    so they are removed before indexing.
    """
    return prepare(markdown_to_text(markdown_text))
