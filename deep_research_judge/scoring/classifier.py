"""Heuristic page classifier: aggregator listing vs. specific content vs. navigation.

Pure regex scoring over (url, title, content); no model calls.
"""

from __future__ import annotations

import re

from deep_research_judge.contracts import (
    ClassificationStats,
    ResultClassification,
    ResultType,
    RetrievedContent,
)

AGGREGATOR_URL_PATTERNS = [
    re.compile(r"search", re.IGNORECASE),
    re.compile(r"events?(?!/[a-z0-9-]+$)", re.IGNORECASE),  # "events" but not "events/<slug>"
    re.compile(r"all[-_]events", re.IGNORECASE),
    re.compile(r"category", re.IGNORECASE),
    re.compile(r"listings?", re.IGNORECASE),
    re.compile(r"browse", re.IGNORECASE),
    re.compile(r"directory", re.IGNORECASE),
    re.compile(r"find", re.IGNORECASE),
    re.compile(r"discover", re.IGNORECASE),
    re.compile(r"explore", re.IGNORECASE),
]

AGGREGATOR_TITLE_PATTERNS = [
    re.compile(r"all events", re.IGNORECASE),
    re.compile(r"find events", re.IGNORECASE),
    re.compile(r"browse events", re.IGNORECASE),
    re.compile(r"event listings", re.IGNORECASE),
    re.compile(r"upcoming events", re.IGNORECASE),
    re.compile(r"search results", re.IGNORECASE),
    re.compile(r"events in", re.IGNORECASE),
    re.compile(r"events near", re.IGNORECASE),
]

_MONTHS = r"(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)"

# (weight, patterns): first matching pattern in a group scores the group once
SPECIFICITY_GROUPS: list[tuple[float, list[re.Pattern[str]]]] = [
    (
        0.3,  # dates
        [
            re.compile(r"\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}"),
            re.compile(_MONTHS + r"[a-z]*\s+\d{1,2}", re.IGNORECASE),
            re.compile(r"\d{1,2}\s+" + _MONTHS, re.IGNORECASE),
        ],
    ),
    (
        0.25,  # times
        [
            re.compile(r"\d{1,2}:\d{2}\s*(?:am|pm)?", re.IGNORECASE),
            re.compile(r"\d{1,2}\s*(?:am|pm)", re.IGNORECASE),
        ],
    ),
    (
        0.25,  # locations
        [
            re.compile(r"(?:at|venue|location):\s*[\w\s]+", re.IGNORECASE),
            re.compile(r"\d+\s+[\w\s]+(?:street|road|avenue|boulevard|lane)", re.IGNORECASE),
        ],
    ),
    (
        0.2,  # prices
        [
            re.compile(r"(?:price|cost|fee|ticket):\s*\$?\d+", re.IGNORECASE),
            re.compile(r"\$\d+(?:\.\d{2})?"),
            re.compile(r"free\s+(?:entry|admission)", re.IGNORECASE),
        ],
    ),
]

_EVENT_MARKER_RE = re.compile(r"\bevent\b", re.IGNORECASE)
_BARE_URL_RE = re.compile(r"https?://\S+")
_LINK_PHRASE_RE = re.compile(r"read more|learn more|view event|see details", re.IGNORECASE)

AGGREGATOR_INDICATOR_THRESHOLD = 1.5
SPECIFIC_INDICATOR_THRESHOLD = 1.2


def url_score(url: str) -> float:
    """0.5 per aggregator URL pattern hit, capped at 1."""
    hits = sum(1 for p in AGGREGATOR_URL_PATTERNS if p.search(url))
    return min(1.0, hits * 0.5)


def title_score(title: str | None) -> float:
    if not title:
        return 0.0
    hits = sum(1 for p in AGGREGATOR_TITLE_PATTERNS if p.search(title))
    return min(1.0, hits * 0.5)


def content_structure_score(content: str) -> float:
    """Density of the word "event" per 100 chars: dense pages are listings."""
    density = len(_EVENT_MARKER_RE.findall(content)) / max(1.0, len(content) / 100)
    if density > 5:
        return 0.2
    if density > 1:
        return 0.7
    return 0.5


def link_density(content: str) -> float:
    """Bare URLs plus "read more"-style phrases per 200 chars, capped at 1."""
    links = len(_BARE_URL_RE.findall(content)) + len(_LINK_PHRASE_RE.findall(content))
    return min(1.0, links / max(1.0, len(content) / 200))


def specificity_score(content: str) -> float:
    score = 0.0
    for weight, patterns in SPECIFICITY_GROUPS:
        if any(p.search(content) for p in patterns):
            score += weight
    return min(1.0, score)


def classify(url: str, content: str, title: str | None = None) -> ResultClassification:
    """Classify one fetched page by how much actionable detail it carries."""
    links = link_density(content)
    aggregator_indicator = url_score(url) + title_score(title) + links
    specific_indicator = content_structure_score(content) + specificity_score(content)

    reasons: list[str] = []
    if aggregator_indicator > AGGREGATOR_INDICATOR_THRESHOLD:
        result_type = ResultType.AGGREGATOR
        actionable = max(0.0, 0.3 - aggregator_indicator * 0.1)
        confidence = min(0.95, 0.7 + aggregator_indicator * 0.1)
        reasons.append("URL/title patterns indicate aggregator page")
        if links > 0.5:
            reasons.append("High link density suggests listing page")
    elif specific_indicator > SPECIFIC_INDICATOR_THRESHOLD:
        result_type = ResultType.SPECIFIC_CONTENT
        actionable = min(1.0, 0.6 + specific_indicator * 0.2)
        confidence = min(0.95, 0.7 + specific_indicator * 0.1)
        reasons.append("Content contains specific details (dates, times, locations)")
    else:
        result_type = ResultType.NAVIGATION
        actionable = 0.4
        confidence = 0.5
        reasons.append("Unclear page type, appears to be navigation or general page")

    return ResultClassification(
        url=url,
        result_type=result_type,
        confidence=confidence,
        actionable_score=actionable,
        reasons=reasons,
    )


def classify_batch(items: list[RetrievedContent]) -> list[ResultClassification]:
    return [classify(i["url"], i.get("content", ""), i.get("title")) for i in items]


def aggregate_stats(classifications: list[ResultClassification]) -> ClassificationStats:
    """Batch means and per-type counts; extraction is suggested when most pages are listings."""
    n = len(classifications)
    counts = {t: 0 for t in ResultType}
    for c in classifications:
        counts[c["result_type"]] += 1

    if n == 0:
        return ClassificationStats(
            average_actionable_score=0.0,
            aggregator_count=0,
            specific_content_count=0,
            navigation_count=0,
            overall_confidence=0.0,
            needs_extraction=False,
        )

    average = sum(c["actionable_score"] for c in classifications) / n
    aggregators = counts[ResultType.AGGREGATOR]
    return ClassificationStats(
        average_actionable_score=average,
        aggregator_count=aggregators,
        specific_content_count=counts[ResultType.SPECIFIC_CONTENT],
        navigation_count=counts[ResultType.NAVIGATION],
        overall_confidence=sum(c["confidence"] for c in classifications) / n,
        needs_extraction=average < 0.6 and aggregators > n / 2,
    )
