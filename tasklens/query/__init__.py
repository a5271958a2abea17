"""Query understanding for tasklens."""

from tasklens.query.deterministic_parser import ExtractionResult, RuleMatch, extract
from tasklens.query.semantic_parser import ModelQueryResult, parse, parse_simple
from tasklens.query.stop_words import filter_stop_words, is_stop_word
from tasklens.query.typos import correct_typos

__all__ = [
    "ExtractionResult",
    "RuleMatch",
    "extract",
    "ModelQueryResult",
    "parse",
    "parse_simple",
    "filter_stop_words",
    "is_stop_word",
    "correct_typos",
]
