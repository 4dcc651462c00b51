"""
Query classification service.

Heuristic, rule-based scoring of a raw query along the axes the router
conditions on:
- complexity (1-10) from length, sentence length, question depth, comparisons
- sensitivity (0-10) from sensitive terms and restricted/financial patterns
- category from keyword-set overlap (default "general")
- estimated token count
- capability flags: requires_code, requires_creativity, requires_factuality

Keyword tables are loaded once from JSON and are read-only afterwards.
The weights below are tunable heuristics, not business rules.
"""
import json
import math
import os
import re
import string
from pathlib import Path
from typing import Dict, List, Optional

from app.core.errors import ClassificationDataLoadError
from app.core.logging import get_logger
from app.models.domain import QueryClassification

logger = get_logger(__name__)

DATA_DIR = Path(__file__).parent.parent.parent.parent / "data"
DEFAULT_KEYWORDS_PATH = DATA_DIR / "classification_keywords.json"
DEFAULT_SENSITIVE_TERMS_PATH = DATA_DIR / "sensitive_terms.json"

DEFAULT_CATEGORY = "general"

# Built-in tables used whenever the JSON files cannot be loaded
BUILTIN_KEYWORD_SETS: Dict[str, List[str]] = {
    "technical": ["code", "algorithm", "api", "database", "programming", "development", "bug", "server"],
    "business": ["strategy", "market", "sales", "customer", "revenue", "profit", "competitor", "partnership"],
    "general": ["information", "summary", "overview", "explain", "describe", "what", "how", "when", "who"],
}
BUILTIN_SENSITIVE_TERMS: List[str] = [
    "confidential", "secret", "private", "sensitive", "internal", "restricted",
]

# Complexity weights
TOKEN_WEIGHT = 0.05
SENTENCE_LENGTH_WEIGHT = 0.2
HOW_BONUS = 1
WHY_BONUS = 2
COMPARISON_BONUS = 2

# Sensitivity weights
SENSITIVE_TERM_WEIGHT = 2
RESTRICTED_INFO_BONUS = 3
FINANCIAL_BONUS = 2

SENTENCE_SPLIT = re.compile(r"[.!?]+")
COMPARISON_PATTERN = re.compile(r"compare|difference|versus|vs", re.IGNORECASE)
RESTRICTED_INFO_PATTERN = re.compile(
    r"password|account|confidential|secret|private|internal", re.IGNORECASE
)
FINANCIAL_PATTERN = re.compile(
    r"revenue|profit|strategy|acquisition|layoff|restructuring", re.IGNORECASE
)

CODE_KEYWORDS = {"code", "function", "program", "script", "algorithm", "implement", "debug", "syntax"}
CODE_PATTERNS = [
    re.compile(r"how to (?:code|program|implement)", re.IGNORECASE),
    re.compile(r"(?:write|create) (?:a|an) (?:function|program|script|code)", re.IGNORECASE),
    re.compile(r"example (?:code|function)", re.IGNORECASE),
]
PROGRAMMING_LANGUAGE_PATTERN = re.compile(
    r"(?<!\w)(?:python|javascript|java|c\+\+|typescript|php|ruby|go|rust|sql)(?!\w)",
    re.IGNORECASE,
)

CREATIVITY_KEYWORDS = {"creative", "generate", "story", "design", "imagine", "innovative", "unique"}
CREATIVITY_PATTERNS = [
    re.compile(r"(?:write|create|generate) (?:a|an) (?:story|poem|article|essay)", re.IGNORECASE),
    re.compile(r"(?:come up with|think of|suggest) (?:ideas|alternatives|solutions)", re.IGNORECASE),
    re.compile(r"how (?:would|could|might)", re.IGNORECASE),
    re.compile(r"what if", re.IGNORECASE),
]

FACTUAL_KEYWORDS = {"facts", "information", "data", "statistics", "history", "report", "accurate"}
FACTUAL_PATTERNS = [
    re.compile(r"(?:what|when|where|who|why) (?:is|are|was|were)", re.IGNORECASE),
    re.compile(r"tell me about", re.IGNORECASE),
    re.compile(r"how (?:does|do|did)", re.IGNORECASE),
    re.compile(r"explain", re.IGNORECASE),
]


def tokenize(text: str) -> List[str]:
    """Lower-case and split on whitespace, dropping empties."""
    return [token for token in text.lower().split() if token]


def round_one_decimal(value: float) -> float:
    """Round half up to one decimal place."""
    return math.floor(value * 10 + 0.5) / 10


def _load_json(path: Path):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ClassificationDataLoadError(str(path), f"Failed to load classification data: {e}") from e


class QueryClassifier:
    """
    Heuristic query classifier.

    classify() never raises: if the keyword tables cannot be read the
    built-in tables are used.
    """

    def __init__(
        self,
        keywords_path: Optional[Path] = None,
        sensitive_terms_path: Optional[Path] = None,
    ):
        self.keywords_path = keywords_path or Path(
            os.getenv("CLASSIFICATION_KEYWORDS_PATH", str(DEFAULT_KEYWORDS_PATH))
        )
        self.sensitive_terms_path = sensitive_terms_path or Path(
            os.getenv("SENSITIVE_TERMS_PATH", str(DEFAULT_SENSITIVE_TERMS_PATH))
        )
        self.keyword_sets: Dict[str, List[str]] = {}
        self.sensitive_terms: List[str] = []
        self.using_builtin_tables = False
        self._is_initialized = False

    def initialize(self) -> bool:
        """
        Load keyword and sensitive-term tables.

        Returns:
            True if the JSON tables were loaded, False if the built-in
            tables were substituted.
        """
        if self._is_initialized:
            return not self.using_builtin_tables

        try:
            keyword_sets = _load_json(self.keywords_path)
            sensitive_terms = _load_json(self.sensitive_terms_path)

            if not isinstance(keyword_sets, dict) or not isinstance(sensitive_terms, list):
                raise ClassificationDataLoadError(
                    str(self.keywords_path),
                    "Keyword sets must be an object and sensitive terms a list",
                )

            self.keyword_sets = {
                str(category): [str(k).lower() for k in keywords if isinstance(k, str)]
                for category, keywords in keyword_sets.items()
                if isinstance(keywords, list)
            }
            self.sensitive_terms = [str(t).lower() for t in sensitive_terms if isinstance(t, str)]
            self.using_builtin_tables = False

            logger.info(
                "query_classifier_tables_loaded",
                categories=sorted(self.keyword_sets),
                sensitive_term_count=len(self.sensitive_terms),
            )
        except ClassificationDataLoadError as e:
            logger.warning(
                "query_classifier_tables_load_failed",
                error=str(e),
                path=e.path,
                message="Using built-in keyword tables",
            )
            self.keyword_sets = {k: list(v) for k, v in BUILTIN_KEYWORD_SETS.items()}
            self.sensitive_terms = list(BUILTIN_SENSITIVE_TERMS)
            self.using_builtin_tables = True

        self._is_initialized = True
        return not self.using_builtin_tables

    def classify(self, query: str) -> QueryClassification:
        """
        Classify a query.

        Args:
            query: Raw query text

        Returns:
            QueryClassification
        """
        if not self._is_initialized:
            self.initialize()

        query = query or ""
        tokens = tokenize(query)

        return QueryClassification(
            complexity=self.calculate_complexity(query, tokens),
            sensitivity=self.calculate_sensitivity(query),
            category=self.determine_category(tokens),
            estimated_tokens=max(1, math.ceil(len(query) / 4)),
            requires_code=self.detect_code_requirement(query, tokens),
            requires_creativity=self.detect_creativity_requirement(query, tokens),
            requires_factuality=self.detect_factuality_requirement(query, tokens),
        )

    def calculate_complexity(self, query: str, tokens: List[str]) -> float:
        query_lower = query.lower()
        # trailing punctuation leaves an empty final piece; it still counts
        sentence_count = max(1, len(SENTENCE_SPLIT.split(query)))
        avg_sentence_length = len(tokens) / sentence_count

        score = (
            len(tokens) * TOKEN_WEIGHT
            + avg_sentence_length * SENTENCE_LENGTH_WEIGHT
            + (HOW_BONUS if "how" in query_lower else 0)
            + (WHY_BONUS if "why" in query_lower else 0)
            + (COMPARISON_BONUS if COMPARISON_PATTERN.search(query) else 0)
        )

        return min(10.0, max(1.0, round_one_decimal(score)))

    def calculate_sensitivity(self, query: str) -> float:
        query_lower = query.lower()
        score = 0

        for term in self.sensitive_terms:
            if term and term in query_lower:
                score += SENSITIVE_TERM_WEIGHT

        if RESTRICTED_INFO_PATTERN.search(query):
            score += RESTRICTED_INFO_BONUS

        if FINANCIAL_PATTERN.search(query):
            score += FINANCIAL_BONUS

        return float(min(10, max(0, score)))

    def determine_category(self, tokens: List[str]) -> str:
        """
        Pick the keyword set with the most matching members.

        A member matches when some token equals or contains it. Ties for
        the top score and all-zero scores both yield "general".
        """
        scores: Dict[str, int] = {}
        for category, keywords in self.keyword_sets.items():
            scores[category] = sum(
                1 for keyword in keywords
                if any(keyword in token for token in tokens)
            )

        if not scores:
            return DEFAULT_CATEGORY

        top_score = max(scores.values())
        if top_score == 0:
            return DEFAULT_CATEGORY

        leaders = [category for category, score in scores.items() if score == top_score]
        if len(leaders) > 1:
            return DEFAULT_CATEGORY
        return leaders[0]

    def detect_code_requirement(self, query: str, tokens: List[str]) -> bool:
        return (
            _has_keyword(tokens, CODE_KEYWORDS)
            or any(pattern.search(query) for pattern in CODE_PATTERNS)
            or bool(PROGRAMMING_LANGUAGE_PATTERN.search(query))
        )

    def detect_creativity_requirement(self, query: str, tokens: List[str]) -> bool:
        return (
            _has_keyword(tokens, CREATIVITY_KEYWORDS)
            or any(pattern.search(query) for pattern in CREATIVITY_PATTERNS)
        )

    def detect_factuality_requirement(self, query: str, tokens: List[str]) -> bool:
        return (
            _has_keyword(tokens, FACTUAL_KEYWORDS)
            or any(pattern.search(query) for pattern in FACTUAL_PATTERNS)
        )


def _has_keyword(tokens: List[str], keywords: set) -> bool:
    # "code," and "code?" count as "code"
    return any(token.strip(string.punctuation) in keywords for token in tokens)


_query_classifier: Optional[QueryClassifier] = None


def get_query_classifier() -> QueryClassifier:
    """Global classifier instance; tables are loaded on first use."""
    global _query_classifier
    if _query_classifier is None:
        _query_classifier = QueryClassifier()
        _query_classifier.initialize()
    return _query_classifier
