"""
Lightweight text heuristics shared by the PDF and Word strategies:
word/sentence/paragraph counts, word frequency and a stop-word language guess.
"""

import re
from collections import Counter
from typing import Dict, List, Optional, TypeVar

from document_processor.statistics import TextStatistics, TopWord

WORD_PATTERN = re.compile(r'\w+')
SENTENCE_PATTERN = re.compile(r'[.!?]+')
PARAGRAPH_PATTERN = re.compile(r'\n\s*\n')
WHITESPACE_PATTERN = re.compile(r'\s')

TOP_WORDS_LIMIT = 10
MIN_FREQUENT_WORD_LENGTH = 3

ENGLISH_STOP_WORDS = frozenset({
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had", "her",
    "was", "one", "our", "out", "day", "get", "has", "him", "his", "how", "its",
    "may", "new", "now", "old", "see", "two", "who", "boy", "did", "man", "men",
    "put", "say", "she", "too", "use",
})

SPANISH_STOP_WORDS = frozenset({
    "que", "de", "no", "a", "la", "el", "es", "y", "en", "lo", "un", "se", "le",
    "da", "su", "por", "son", "con", "para", "al", "una", "ser", "te", "ha", "o",
    "me", "ya", "todo", "mi", "pero", "sus", "muy", "este", "del", "más", "sin",
    "puede", "estar", "como", "hacer", "dos", "bien", "aquí", "tiempo", "también",
    "hasta", "vida", "tanto", "casa", "vez",
})

StatsT = TypeVar("StatsT", bound=TextStatistics)


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercased maximal runs of word characters."""
    if not text:
        return []
    return [match.group().lower() for match in WORD_PATTERN.finditer(text)]


def count_segments(pattern: re.Pattern, text: str) -> int:
    """Number of pieces after splitting on pattern, ignoring trailing empties."""
    parts = pattern.split(text)
    while parts and parts[-1] == "":
        parts.pop()
    return len(parts)


def detect_language(words: List[str]) -> str:
    """Guess english/spanish from stop-word hits; ties and no words give 'unknown'."""
    if not words:
        return "unknown"
    english = sum(1 for word in words if word in ENGLISH_STOP_WORDS)
    spanish = sum(1 for word in words if word in SPANISH_STOP_WORDS)
    if english > spanish:
        return "english"
    if spanish > english:
        return "spanish"
    return "unknown"


def top_words(words: List[str], limit: int = TOP_WORDS_LIMIT) -> List[TopWord]:
    """Most frequent words longer than two characters; ties keep first-seen order."""
    frequency = Counter(word for word in words if len(word) >= MIN_FREQUENT_WORD_LENGTH)
    return [TopWord(word=word, frequency=count) for word, count in frequency.most_common(limit)]


def word_length_distribution(words: List[str]) -> Dict[int, int]:
    return dict(sorted(Counter(len(word) for word in words).items()))


def analyze_text(text: Optional[str], stats: StatsT) -> StatsT:
    """Fill the text fields of `stats` from `text` and return it."""
    words = tokenize(text)
    stats.detected_language = detect_language(words)

    if text is None or not text.strip():
        stats.has_text = False
        return stats

    stats.has_text = True
    stats.character_count = len(text)
    stats.character_count_no_spaces = len(WHITESPACE_PATTERN.sub('', text))
    stats.word_count = len(words)
    stats.sentence_count = count_segments(SENTENCE_PATTERN, text)
    stats.paragraph_count = count_segments(PARAGRAPH_PATTERN, text)

    if words:
        frequent = Counter(word for word in words if len(word) >= MIN_FREQUENT_WORD_LENGTH)
        stats.unique_word_count = len(frequent)
        stats.average_word_length = sum(len(word) for word in words) / len(words)
        stats.top_words = top_words(words)
        stats.word_length_distribution = word_length_distribution(words)

    return stats
