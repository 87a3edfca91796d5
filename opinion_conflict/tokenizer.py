"""Tokenization for lexical similarity.

Scripts written without spaces between words (Chinese, Japanese kana) are cut
into fixed-width character n-grams; everything else is split on non-word
characters and lower-cased.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

_UNSEGMENTED = "\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"

TOKEN_PATTERN = re.compile(
    rf"(?P<unsegmented>[{_UNSEGMENTED}]+)|(?P<word>[^\W_{_UNSEGMENTED}]+)"
)

# Single-character Chinese function words
STOP_CHARS = frozenset(
    "的了在是我有和就不人都一上也很到说要去你会着看好这那"
)

STOP_WORDS = frozenset(
    {
        "the", "an", "is", "are", "was", "were", "be", "been", "being",
        "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "can", "this", "that", "these",
        "those", "and", "or", "but", "in", "on", "at", "to", "for", "of",
        "with", "by", "from", "as", "it", "its", "they", "them", "their",
        "we", "us", "our",
    }
)


class Tokenizer:
    """Splits text into comparable units.

    Args:
        ngram_size: Width of character n-grams for unsegmented scripts
        stop_words: Lower-cased words dropped from segmented scripts
        stop_chars: Characters dropped from unsegmented scripts before shingling
    """

    def __init__(
        self,
        ngram_size: int = 1,
        stop_words: Iterable[str] = STOP_WORDS,
        stop_chars: Iterable[str] = STOP_CHARS,
    ) -> None:
        if ngram_size < 1:
            raise ValueError("ngram_size must be at least 1")
        self.ngram_size = ngram_size
        self.stop_words = frozenset(stop_words)
        self.stop_chars = frozenset(stop_chars)

    def tokenize(self, text: str | None) -> list[str]:
        """Tokenize text in reading order.

        Args:
            text: Raw text (None or blank is allowed)

        Returns:
            List of normalized tokens, empty for blank input
        """
        if not text or not text.strip():
            return []

        tokens: list[str] = []
        for match in TOKEN_PATTERN.finditer(text):
            run = match.group("unsegmented")
            if run is not None:
                tokens.extend(self._shingle(run))
                continue

            word = match.group("word").lower()
            if len(word) > 1 and word not in self.stop_words:
                tokens.append(word)

        return tokens

    def _shingle(self, run: str) -> list[str]:
        chars = [c for c in run if c not in self.stop_chars]
        n = self.ngram_size
        if not chars:
            return []
        if len(chars) <= n:
            return ["".join(chars)]
        return ["".join(chars[i:i + n]) for i in range(len(chars) - n + 1)]

    def __repr__(self) -> str:
        return f"Tokenizer(ngram_size={self.ngram_size})"


_default_tokenizer = Tokenizer()


def tokenize(text: str | None) -> list[str]:
    """Tokenize with the default tokenizer."""
    return _default_tokenizer.tokenize(text)
