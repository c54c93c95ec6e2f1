"""Cross-document boilerplate detection for crawled text.

Navigation bars, cookie banners and footers repeat across every page of a
site and drown out the content in embeddings. ``BoilerplateAnalyzer`` finds
word n-grams that occur in several distinct documents of a sample and strips
them from later documents before they are embedded.
"""

import logging
import re
from collections import Counter

from vecsync.constants import (
    DEDUP_MAX_PHRASES,
    DEDUP_MIN_OCCURRENCES,
    DEDUP_MIN_PHRASE_CHARS,
    DEDUP_NGRAM_SIZES,
    DEDUP_SAMPLE_SIZE,
)

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def extract_ngrams(text: str, sizes: tuple[int, ...] = DEDUP_NGRAM_SIZES) -> set[str]:
    """Sliding-window word n-grams, striding half the window length."""
    words = text.split()
    phrases: set[str] = set()
    for n in sizes:
        step = max(1, n // 2)
        for start in range(0, len(words) - n + 1, step):
            phrases.add(" ".join(words[start : start + n]))
    return phrases


class BoilerplateAnalyzer:
    """One-shot document-frequency analysis followed by phrase stripping.

    Only documents cleaned after ``analyze`` has run benefit; nothing is
    cleaned retroactively.
    """

    def __init__(
        self,
        min_occurrences: int = DEDUP_MIN_OCCURRENCES,
        min_phrase_chars: int = DEDUP_MIN_PHRASE_CHARS,
        max_phrases: int = DEDUP_MAX_PHRASES,
        sample_size: int = DEDUP_SAMPLE_SIZE,
        ngram_sizes: tuple[int, ...] = DEDUP_NGRAM_SIZES,
    ) -> None:
        self.min_occurrences = min_occurrences
        self.min_phrase_chars = min_phrase_chars
        self.max_phrases = max_phrases
        self.sample_size = sample_size
        self.ngram_sizes = ngram_sizes
        self.common_phrases: list[str] = []
        self.analyzed = False

    def analyze(self, documents: list[str]) -> int:
        """Find phrases shared by at least ``min_occurrences`` documents.

        Args:
            documents: Sample texts; only the first ``sample_size`` are used

        Returns:
            int: Number of common phrases retained
        """
        sample = [doc for doc in documents if doc][: self.sample_size]
        document_frequency: Counter[str] = Counter()
        for doc in sample:
            for phrase in extract_ngrams(doc, self.ngram_sizes):
                if len(phrase) >= self.min_phrase_chars:
                    document_frequency[phrase] += 1

        common = [
            (phrase, count)
            for phrase, count in document_frequency.most_common()
            if count >= self.min_occurrences
        ][: self.max_phrases]

        # Longest first so superstrings go before their substrings
        self.common_phrases = sorted((phrase for phrase, _ in common), key=len, reverse=True)
        self.analyzed = True
        logger.info(
            f"🔍 Boilerplate analysis over {len(sample)} documents: "
            f"{len(self.common_phrases)} common phrases"
        )
        return len(self.common_phrases)

    def clean(self, text: str) -> str:
        """Strip every common phrase from text and collapse whitespace."""
        if not self.common_phrases:
            return text
        cleaned = _WHITESPACE.sub(" ", text)
        for phrase in self.common_phrases:
            cleaned = cleaned.replace(phrase, " ")
        return _WHITESPACE.sub(" ", cleaned).strip()
