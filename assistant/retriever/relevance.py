"""
Relevance Ranker

Scores candidate files against a user query by file-name keyword overlap
and recency. Query keywords are expanded with financial terminology so that
e.g. "balance sheet" also matches "BS_2024.pdf".

Pure and deterministic for a given ``now``.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Set


@dataclass
class CandidateFile:
    """A file discovered during traversal, not yet selected"""
    id: str
    name: str
    size: Optional[int] = None
    modified_at: Optional[str] = None


# Synonym groups, each triggered by a pattern on the lower-cased query
SYNONYM_GROUPS = [
    (
        r"financial|report|package",
        ["financial", "report", "reports", "package", "statement"],
    ),
    (
        r"balance|bs|financial position",
        ["balance", "balance-sheet", "balance_sheet", "sofp",
         "statement of financial position", "bs", "balancesheet"],
    ),
    (
        r"p&?l|profit|loss|income|operations|revenue|sales",
        ["income", "statement of operations", "statement of income", "p&l", "pnl",
         "profit", "loss", "pl", "earnings", "revenue", "sales"],
    ),
    (
        r"cash\s*flow|cashflow|cfs",
        ["cash", "cash-flow", "cashflow", "statement of cash flows", "cfs"],
    ),
    (
        r"kpi|metric",
        ["kpi", "metric", "metrics", "dashboard"],
    ),
    (
        r"ledger|trial|tb\b|\bgl\b",
        ["trial balance", "tb", "general ledger", "gl", "ledger"],
    ),
    (
        r"\bar\b|receivable|\bap\b|payable|aging",
        ["ar", "accounts receivable", "ap", "accounts payable", "aging"],
    ),
    (
        r"expense|cogs|sga|sg&a",
        ["expenses", "cogs", "cost of goods", "sga", "sg&a"],
    ),
    (
        r"ebitda|ebit|operating income",
        ["ebitda", "ebit", "operating income"],
    ),
    (
        r"capex|depreciation|amortization",
        ["capex", "capital expenditures", "depreciation", "amortization"],
    ),
    (
        r"budget|forecast|variance|plan|actual",
        ["budget", "forecast", "variance", "plan", "actual"],
    ),
]

# Period tokens are kept verbatim when they appear in the query
PERIOD_TOKENS = [
    "jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec",
    "monthly", "q1", "q2", "q3", "q4", "fy", "ytd", "qtd",
]

RECENT_DAYS = 45
SEMI_RECENT_DAYS = 120

_STRIP_PATTERN = re.compile(r"[^a-z0-9\s&/.-]")


def tokenize(query: str) -> List[str]:
    """Lower-case, blank out disallowed characters, drop 1-char tokens."""
    cleaned = _STRIP_PATTERN.sub(" ", (query or "").lower())
    return [t for t in cleaned.split() if len(t) >= 2]


def expand_keywords(query: str) -> Set[str]:
    """Base tokens plus every triggered synonym group and period token."""
    keywords = set(tokenize(query))
    q = (query or "").lower()

    for pattern, synonyms in SYNONYM_GROUPS:
        if re.search(pattern, q):
            keywords.update(synonyms)

    for period in PERIOD_TOKENS:
        if period in q:
            keywords.add(period)

    return keywords


def _parse_timestamp(value: str) -> Optional[datetime]:
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (ValueError, TypeError, AttributeError):
        return None
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def recency_bonus(modified_at: Optional[str], now: datetime) -> int:
    if not modified_at:
        return 0
    ts = _parse_timestamp(modified_at)
    if ts is None:
        return 0
    days = max(0.0, (now - ts).total_seconds() / 86400)
    if days < RECENT_DAYS:
        return 2
    if days < SEMI_RECENT_DAYS:
        return 1
    return 0


def score_candidate(candidate: CandidateFile, keywords: Set[str], now: datetime) -> int:
    name = (candidate.name or "").lower()
    score = 0
    for kw in keywords:
        if kw and kw in name:
            score += 2 if len(kw) >= 4 else 1
    return score + recency_bonus(candidate.modified_at, now)


def select_top_relevant_files(
    query: str,
    candidates: List[CandidateFile],
    max_results: int,
    now: Optional[datetime] = None,
) -> List[CandidateFile]:
    """
    Rank candidates for a query and return at most ``max_results``.

    Args:
        query: Raw user query
        candidates: Candidate pool (any order)
        max_results: Upper bound on returned files
        now: Reference time for the recency bonus (defaults to current UTC)

    Returns:
        Distinct-id candidates sorted by score desc, then name asc
    """
    if max_results <= 0 or not candidates:
        return []

    now = now or datetime.now(timezone.utc)
    keywords = expand_keywords(query)

    scored = [(score_candidate(c, keywords, now), c) for c in candidates]
    scored.sort(key=lambda pair: (-pair[0], pair[1].name or ""))

    picked: List[CandidateFile] = []
    seen = set()
    for _, candidate in scored:
        if len(picked) >= max_results:
            break
        if candidate.id in seen:
            continue
        seen.add(candidate.id)
        picked.append(candidate)
    return picked
