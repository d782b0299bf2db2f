"""Role catalogue — one prompt template and dimension set per judge role.

Every EvaluatorRole must have a RoleSpec here; tests enforce that the
catalogue is exhaustive over the enum.
"""

from __future__ import annotations

from dataclasses import dataclass

from deep_research_judge.contracts import EvaluatorRole


@dataclass(frozen=True)
class RoleSpec:
    template: str
    dimensions: tuple[str, ...]


_RESPONSE_FORMAT = """\
## Response Format (JSON)
{{
  "scores": {{{score_keys}}},
  "confidence": <0.0-1.0, how sure you are of this assessment>,
  "critique": "<main weaknesses, one or two sentences>",
  "explanation": "<why you gave these scores>",
  "suggestions": ["<concrete improvement>", ...]
}}

Respond ONLY with valid JSON."""


def _format(dimensions: tuple[str, ...]) -> str:
    keys = ", ".join(f'"{d}": <0.0-1.0>' for d in dimensions)
    return _RESPONSE_FORMAT.format(score_keys=keys)


# --- Plan phase ---

INTENT_ANALYST_DIMENSIONS = ("intentAlignment", "relevance")
INTENT_ANALYST_TEMPLATE = (
    """\
You are an intent analyst reviewing a research plan. Today is {currentDate}.

## User Query
{query}

## Research Plan
{plan}

## Evaluation Criteria
- intentAlignment: does the plan pursue what the user actually wants to know, \
including implicit constraints such as location, time frame ({currentYear}) and audience?
- relevance: are the planned steps relevant to the query, without detours?

"""
    + _format(INTENT_ANALYST_DIMENSIONS)
)

COVERAGE_CHECKER_DIMENSIONS = ("queryCoverage", "queryAccuracy", "scopeAppropriateness")
COVERAGE_CHECKER_TEMPLATE = (
    """\
You are a coverage checker reviewing the search queries of a research plan. \
Today is {currentDate}.

## User Query
{query}

## Research Plan
{plan}

## Search Queries
{searchQueries}

## Evaluation Criteria
- queryCoverage: do the queries together cover every aspect of the user query?
- queryAccuracy: are the queries precise, correctly phrased and likely to return useful results?
- scopeAppropriateness: is the scope neither too broad nor too narrow?

"""
    + _format(COVERAGE_CHECKER_DIMENSIONS)
)

# --- Retrieval phase ---

SOURCE_RELEVANCE_DIMENSIONS = ("contextRecall", "contextPrecision")
SOURCE_RELEVANCE_TEMPLATE = (
    """\
You are a retrieval judge assessing whether retrieved sources fit a query.

## User Query
{query}

## Retrieved Sources
{sources}

## Evaluation Criteria
- contextRecall: do the sources contain the information needed to answer the query?
- contextPrecision: what share of the retrieved content is actually relevant?

"""
    + _format(SOURCE_RELEVANCE_DIMENSIONS)
)

SOURCE_QUALITY_DIMENSIONS = ("sourceQuality",)
SOURCE_QUALITY_TEMPLATE = (
    """\
You are a source quality judge. Today is {currentDate}.

## User Query
{query}

## Retrieved Sources
{sources}

## Evaluation Criteria
- sourceQuality: are the sources authoritative, current and specific \
(concrete pages rather than listings, search results or category pages)?

"""
    + _format(SOURCE_QUALITY_DIMENSIONS)
)

COVERAGE_COMPLETENESS_DIMENSIONS = ("coverageCompleteness",)
COVERAGE_COMPLETENESS_TEMPLATE = (
    """\
You are a coverage judge for retrieved research material.

## User Query
{query}

## Retrieved Sources
{sources}

## Evaluation Criteria
- coverageCompleteness: taken together, do the sources cover every part of the query?

"""
    + _format(COVERAGE_COMPLETENESS_DIMENSIONS)
)

# --- Answer phase ---

FAITHFULNESS_DIMENSIONS = ("faithfulness",)
FAITHFULNESS_TEMPLATE = (
    """\
You are a faithfulness judge. Check that the answer only states what the sources support.

## User Query
{query}

## Sources
{sources}

## Answer
{answer}

## Evaluation Criteria
- faithfulness: every factual statement in the answer is grounded in the sources; \
penalise invented names, numbers, dates and URLs.

"""
    + _format(FAITHFULNESS_DIMENSIONS)
)

ANSWER_RELEVANCE_DIMENSIONS = ("answerRelevance",)
ANSWER_RELEVANCE_TEMPLATE = (
    """\
You are an answer relevance judge.

## User Query
{query}

## Answer
{answer}

## Evaluation Criteria
- answerRelevance: the answer addresses the question that was asked, directly and \
without padding.

"""
    + _format(ANSWER_RELEVANCE_DIMENSIONS)
)

ANSWER_COMPLETENESS_DIMENSIONS = ("completeness", "accuracy")
ANSWER_COMPLETENESS_TEMPLATE = (
    """\
You are an answer completeness judge. Today is {currentDate}.

## User Query
{query}

## Sources
{sources}

## Answer
{answer}

## Evaluation Criteria
- completeness: every part of the query is answered with enough detail to act on.
- accuracy: details (dates, prices, places, names) match the sources and are current \
for {currentYear}.

"""
    + _format(ANSWER_COMPLETENESS_DIMENSIONS)
)


ROLE_SPECS: dict[EvaluatorRole, RoleSpec] = {
    EvaluatorRole.INTENT_ANALYST: RoleSpec(INTENT_ANALYST_TEMPLATE, INTENT_ANALYST_DIMENSIONS),
    EvaluatorRole.COVERAGE_CHECKER: RoleSpec(
        COVERAGE_CHECKER_TEMPLATE, COVERAGE_CHECKER_DIMENSIONS
    ),
    EvaluatorRole.SOURCE_RELEVANCE: RoleSpec(
        SOURCE_RELEVANCE_TEMPLATE, SOURCE_RELEVANCE_DIMENSIONS
    ),
    EvaluatorRole.SOURCE_QUALITY: RoleSpec(SOURCE_QUALITY_TEMPLATE, SOURCE_QUALITY_DIMENSIONS),
    EvaluatorRole.COVERAGE_COMPLETENESS: RoleSpec(
        COVERAGE_COMPLETENESS_TEMPLATE, COVERAGE_COMPLETENESS_DIMENSIONS
    ),
    EvaluatorRole.FAITHFULNESS: RoleSpec(FAITHFULNESS_TEMPLATE, FAITHFULNESS_DIMENSIONS),
    EvaluatorRole.ANSWER_RELEVANCE: RoleSpec(
        ANSWER_RELEVANCE_TEMPLATE, ANSWER_RELEVANCE_DIMENSIONS
    ),
    EvaluatorRole.ANSWER_COMPLETENESS: RoleSpec(
        ANSWER_COMPLETENESS_TEMPLATE, ANSWER_COMPLETENESS_DIMENSIONS
    ),
}

PLAN_ROLES = (EvaluatorRole.INTENT_ANALYST, EvaluatorRole.COVERAGE_CHECKER)
RETRIEVAL_ROLES = (
    EvaluatorRole.SOURCE_RELEVANCE,
    EvaluatorRole.SOURCE_QUALITY,
    EvaluatorRole.COVERAGE_COMPLETENESS,
)
ANSWER_ROLES = (
    EvaluatorRole.FAITHFULNESS,
    EvaluatorRole.ANSWER_RELEVANCE,
    EvaluatorRole.ANSWER_COMPLETENESS,
)


def get_role_spec(role: EvaluatorRole) -> RoleSpec:
    return ROLE_SPECS[role]
