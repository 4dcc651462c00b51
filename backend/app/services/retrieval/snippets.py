"""
Query-relevant snippet extraction.

A snippet is made of the (up to) three sentences of a document that contain
the most distinct query keywords, in descending order of that count. When
no sentence contains a keyword, the first 200 characters stand in.
"""
import re
from typing import List

MIN_KEYWORD_LENGTH = 4
MAX_SNIPPET_SENTENCES = 3
FALLBACK_SNIPPET_CHARS = 200

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_NON_WORD = re.compile(r"[^\w-]")


def extract_keywords(query: str) -> List[str]:
    """
    Lowercased query words longer than 3 characters, first occurrence order.

    Surrounding punctuation is dropped ("pricing?" -> "pricing").
    """
    keywords: List[str] = []
    for raw in query.lower().split():
        word = _NON_WORD.sub("", raw)
        if len(word) >= MIN_KEYWORD_LENGTH and word not in keywords:
            keywords.append(word)
    return keywords


def _leading_text(content: str) -> str:
    return content[:FALLBACK_SNIPPET_CHARS] + "..."


def extract_snippet(content: str, query: str) -> str:
    if not content:
        return ""

    keywords = extract_keywords(query)
    if not keywords:
        return _leading_text(content)

    scored = []
    for sentence in _SENTENCE_SPLIT.split(content):
        lowered = sentence.lower()
        score = sum(1 for keyword in keywords if keyword in lowered)
        if score > 0:
            scored.append((score, sentence.strip()))

    if not scored:
        return _leading_text(content)

    # sort is stable: equal scores keep document order
    scored.sort(key=lambda item: item[0], reverse=True)
    top = [sentence for _, sentence in scored[:MAX_SNIPPET_SENTENCES]]
    return ". ".join(top) + "."
