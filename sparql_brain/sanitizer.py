"""Repair pass that turns a raw model completion into a bounded SPARQL query.

The rules run in a fixed order and later rules assume the earlier ones have
already run. None of them rejects input: the result is always a best-effort
query string for the downstream syntax checker.
"""

import logging
import re
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_PREFIXES = (
    "PREFIX dcat: <http://www.w3.org/ns/dcat#>\n"
    "PREFIX dct: <http://purl.org/dc/terms/>\n"
    "PREFIX foaf: <http://xmlns.com/foaf/0.1/>\n"
    "\n"
)

# Fence with a query-language tag (same line as the query or not), a fence with
# any other tag on its own line, then any stray fence
FENCE_WITH_TAG_PATTERN = re.compile(
    r"```[ \t]*(?:(?:sparql|sql)\b[ \t]*(?:\r?\n)?|[\w+-]*[ \t]*(?:\r?\n|$))",
    re.IGNORECASE,
)
FENCE_PATTERN = re.compile(r"```")

PREFIX_DECLARATION_PATTERN = re.compile(r"\bPREFIX\s+[\w.-]*:\s*<", re.IGNORECASE)
PREFIX_BLOCK_PATTERN = re.compile(
    r"\bPREFIX\s+[\w.-]*:\s*<[\s\S]*?\bLIMIT\s+\d+", re.IGNORECASE
)
SELECT_BLOCK_PATTERN = re.compile(r"\bSELECT\b[\s\S]*?\bLIMIT\s+\d+", re.IGNORECASE)
QUERY_FORM_PATTERN = re.compile(
    r"^[ \t]*(?:SELECT|ASK|CONSTRUCT|DESCRIBE)\b", re.IGNORECASE | re.MULTILINE
)
LIMIT_PATTERN = re.compile(r"\bLIMIT\s+\d+", re.IGNORECASE)
LEADING_LIMIT_PATTERN = re.compile(r"^[\s\S]*?\bLIMIT\s+\d+", re.IGNORECASE)
LIMIT_WITH_SPACE_PATTERN = re.compile(r"(\s*)(\bLIMIT\s+\d+)", re.IGNORECASE)

Rule = Callable[[str], str]


def trim_whitespace(text: str) -> str:
    return text.strip()


def strip_code_fences(text: str) -> str:
    """Remove ``` markers, including a language tag on the fence line."""
    text = FENCE_WITH_TAG_PATTERN.sub("", text)
    return FENCE_PATTERN.sub("", text)


def extract_query_block(text: str) -> str:
    """Keep the span from the first PREFIX (or SELECT) to the first LIMIT n."""
    match = PREFIX_BLOCK_PATTERN.search(text)
    if match is None:
        match = SELECT_BLOCK_PATTERN.search(text)
    if match is None:
        return text
    return match.group(0).strip()


def strip_leading_prose(text: str) -> str:
    """Drop text before the first prefix declaration or query form."""
    match = PREFIX_DECLARATION_PATTERN.search(text)
    if match is None:
        match = QUERY_FORM_PATTERN.search(text)
    if match is not None and match.start() > 0:
        return text[match.start():].lstrip()
    return text


def strip_trailing_prose(text: str) -> str:
    """Drop everything after the first limit clause."""
    match = LEADING_LIMIT_PATTERN.match(text)
    if match is None:
        return text
    return match.group(0)


def ensure_prefixes(text: str, prefixes: str = DEFAULT_PREFIXES) -> str:
    """Prepend the default catalog prefixes when no declaration is present."""
    if PREFIX_DECLARATION_PATTERN.search(text):
        return text
    return prefixes + text


def balance_braces(text: str) -> str:
    """Close unclosed groups before the limit clause, or at the end.

    Only missing closing braces are repaired; surplus closing braces are
    left as they are.
    """
    missing = text.count("{") - text.count("}")
    if missing <= 0:
        return text

    if LIMIT_PATTERN.search(text):
        closing = "\n}" * missing
        return LIMIT_WITH_SPACE_PATTERN.sub(
            lambda m: closing + m.group(1) + m.group(2), text, count=1
        )
    return text.rstrip() + " }" * missing


DEFAULT_RULES: Sequence[Rule] = (
    trim_whitespace,
    strip_code_fences,
    extract_query_block,
    strip_leading_prose,
    strip_trailing_prose,
    ensure_prefixes,
    balance_braces,
)


class SparqlSanitizer:
    """Applies the repair rules in order."""

    def __init__(self, rules: Sequence[Rule] = DEFAULT_RULES):
        self.rules = tuple(rules)

    def sanitize(self, raw: Optional[str]) -> str:
        """Turn an arbitrary completion into structurally valid query text."""
        text = raw or ""
        for rule in self.rules:
            text = rule(text)

        logger.debug(f"Sanitized completion ({len(raw or '')} -> {len(text)} chars)")
        return text


def sanitize(raw: Optional[str]) -> str:
    """Sanitize with the default rule list."""
    return SparqlSanitizer().sanitize(raw)
