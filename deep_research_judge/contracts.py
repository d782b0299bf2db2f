"""Single source of truth for all types and enums."""

from __future__ import annotations

from enum import Enum
from typing import Any, NotRequired, TypedDict

# --- Enums ---


class EvaluatorRole(str, Enum):
    # Plan phase
    INTENT_ANALYST = "intentAnalyst"
    COVERAGE_CHECKER = "coverageChecker"
    # Retrieval phase
    SOURCE_RELEVANCE = "sourceRelevance"
    SOURCE_QUALITY = "sourceQuality"
    COVERAGE_COMPLETENESS = "coverageCompleteness"
    # Answer phase
    FAITHFULNESS = "faithfulness"
    ANSWER_RELEVANCE = "answerRelevance"
    ANSWER_COMPLETENESS = "answerCompleteness"


class EscalationTrigger(str, Enum):
    LOW_CONFIDENCE = "low_confidence"  # every judge < 0.6
    DISAGREEMENT = "disagreement"  # same-dimension spread > 0.3
    BORDERLINE = "borderline"  # overall within 0.05 of the pass threshold


class FinalVerdict(str, Enum):
    PASS = "pass"
    FAIL = "fail"
    ITERATE = "iterate"


class IterationMode(str, Enum):
    TARGETED_FIX = "targeted_fix"
    FULL_REGENERATION = "full_regeneration"


class ClaimType(str, Enum):
    FACTUAL = "factual"
    COMPARATIVE = "comparative"
    TEMPORAL = "temporal"
    CAUSAL = "causal"
    OPINION = "opinion"


class WordType(str, Enum):
    PROPER_NOUN = "proper_noun"
    NUMERAL = "numeral"
    NOUN = "noun"
    VERB = "verb"


class EntailmentVerdict(str, Enum):
    ENTAILED = "entailed"
    NEUTRAL = "neutral"
    CONTRADICTED = "contradicted"


class ConfidenceLevel(str, Enum):
    HIGH = "high"  # >= 0.8
    MEDIUM = "medium"  # 0.6 - 0.8
    LOW = "low"  # 0.4 - 0.6
    VERY_LOW = "very_low"  # < 0.4


class ResultType(str, Enum):
    AGGREGATOR = "AGGREGATOR"  # listing / search / category page
    SPECIFIC_CONTENT = "SPECIFIC_CONTENT"  # one concrete item with details
    NAVIGATION = "NAVIGATION"  # neither


# --- Judge plumbing ---


class TokenUsage(TypedDict):
    agent: str
    model: str
    input_tokens: int
    output_tokens: int
    cost_usd: float
    timestamp: str


# --- Panel evaluation ---


class PanelContext(TypedDict):
    """Inputs substituted into a role prompt. Only query is required."""

    query: str
    plan: NotRequired[Any]
    search_queries: NotRequired[list[str]]
    sources: NotRequired[str]
    answer: NotRequired[str]


class EvaluatorResult(TypedDict):
    role: EvaluatorRole
    model: str
    dimensions: list[str]
    scores: dict[str, float]  # each in [0, 1]
    confidence: float  # [0, 1]
    critique: str
    explanation: str
    suggestions: list[str]
    raw_response: str
    latency_ms: int
    tokens_used: int


class AggregatedResult(TypedDict):
    scores: dict[str, float]
    confidence: float


class EscalationResult(TypedDict):
    trigger: EscalationTrigger
    model: str
    narrative: str
    trust_decisions: dict[str, float]  # role -> trust score
    final_verdict: FinalVerdict
    scores: dict[str, float]
    overall_confidence: float
    recommendations: list[str]
    latency_ms: int
    tokens_used: int


class SpecificIssue(TypedDict):
    issue: str
    fix: str


class IterationDecision(TypedDict):
    mode: IterationMode
    specific_issues: list[SpecificIssue]
    feedback_to_planner: str


class PlanAttempt(TypedDict):
    attempt_number: int  # 1-based
    timestamp: str
    plan: Any  # the plan this attempt judged
    evaluator_results: list[EvaluatorResult]
    aggregated_scores: dict[str, float]
    aggregated_confidence: float
    escalation_trigger: EscalationTrigger | None
    escalation_result: NotRequired[EscalationResult]
    passed: bool
    iteration_decision: NotRequired[IterationDecision]


class PlanEvaluationResult(TypedDict):
    passed: bool
    scores: dict[str, float]
    confidence: float
    explanations: dict[str, str]
    attempts: list[PlanAttempt]
    total_iterations: int
    escalated_to_large_model: bool
    evaluation_skipped: bool
    skip_reason: NotRequired[str]


# --- Retrieval / answer evaluation ---


class RetrievedContent(TypedDict):
    url: str
    content: str
    title: NotRequired[str]


class ResultClassification(TypedDict):
    url: str
    result_type: ResultType
    confidence: float
    actionable_score: float
    reasons: list[str]


class ClassificationStats(TypedDict):
    average_actionable_score: float
    aggregator_count: int
    specific_content_count: int
    navigation_count: int
    overall_confidence: float
    needs_extraction: bool


class SourceDetail(TypedDict):
    url: str
    result_type: ResultType
    actionable_score: float
    classification_confidence: float
    reasons: list[str]


class RetrievalEvaluationResult(TypedDict):
    passed: bool
    scores: dict[str, float]
    confidence: float
    explanations: dict[str, str]
    flagged_severe: bool
    needs_extraction: bool
    extraction_reason: NotRequired[str]
    source_details: list[SourceDetail]
    classification_stats: NotRequired[ClassificationStats]
    evaluator_results: list[EvaluatorResult]
    evaluation_skipped: bool
    skip_reason: NotRequired[str]


class AnswerEvaluationResult(TypedDict):
    passed: bool
    scores: dict[str, float]
    confidence: float
    explanations: dict[str, str]
    should_regenerate: bool
    critique: str
    improvement_suggestions: list[str]
    failing_dimensions: list[str]
    evaluator_results: list[EvaluatorResult]
    evaluation_skipped: bool
    skip_reason: NotRequired[str]


# --- Confidence scoring ---


class SubstantiveWord(TypedDict):
    word: str
    type: WordType
    position: int
    importance: float  # derived from type, not from the judge


class SourceSpan(TypedDict):
    start: int
    end: int


class Claim(TypedDict):
    id: str
    text: str
    type: ClaimType
    substantive_words: list[SubstantiveWord]
    source_span: SourceSpan


class EvidenceSource(TypedDict):
    """A retrieved source as seen by the entailment checker."""

    id: str
    url: str
    content: str
    title: NotRequired[str]


class SourceEvidence(TypedDict):
    source_id: str
    source_url: str
    passage: str
    similarity: float


class EntailmentResult(TypedDict):
    claim_id: str
    verdict: EntailmentVerdict
    score: float
    supporting_sources: list[SourceEvidence]
    contradicting_sources: list[SourceEvidence]
    reasoning: str


class WordUncertainty(TypedDict):
    word: str
    type: WordType
    importance: float
    uncertainty: float
    contribution: float  # importance * uncertainty


class ClaimSUScore(TypedDict):
    claim_id: str
    score: float
    word_breakdown: list[WordUncertainty]


class SUScoreResult(TypedDict):
    overall_score: float
    claim_scores: list[ClaimSUScore]
    methodology: str


class ClaimConfidence(TypedDict):
    claim_id: str
    claim_text: str
    confidence: float
    level: ConfidenceLevel
    entailment_score: float
    su_score: float
    supporting_source_count: int


class ConfidenceMethodology(TypedDict):
    entailment_weight: float
    su_score_weight: float
    source_count_weight: float
    description: str


class ConfidenceResult(TypedDict):
    overall_confidence: float
    level: ConfidenceLevel
    claim_confidences: list[ClaimConfidence]
    su_score: float
    methodology: ConfidenceMethodology
    recommendations: list[str]


# --- Persistence ---


class PlanPhaseRecord(TypedDict):
    attempts: list[PlanAttempt]
    final_scores: dict[str, float]
    explanations: dict[str, str]
    passed: bool
    total_iterations: int
    escalated_to_large_model: bool


class RetrievalPhaseRecord(TypedDict):
    scores: dict[str, float]
    explanations: dict[str, str]
    passed: bool
    flagged_severe: bool
    source_details: list[SourceDetail]


class AnswerPhaseRecord(TypedDict):
    final_scores: dict[str, float]
    explanations: dict[str, str]
    passed: bool
    regenerated: bool


class EvaluationRecord(TypedDict):
    id: NotRequired[str]  # assigned by the store
    log_id: str
    query_id: str
    timestamp: NotRequired[str]  # assigned by the store
    user_query: str
    plan_evaluation: PlanPhaseRecord | None
    retrieval_evaluation: RetrievalPhaseRecord | None
    answer_evaluation: AnswerPhaseRecord | None
    overall_score: float | None
    passed: bool
    evaluation_skipped: bool
    skip_reason: NotRequired[str]


# --- Observability ---


class RunEvent(TypedDict):
    node: str  # "claim_extraction", "evaluation_gateway", ...
    status: str  # "start" | "progress" | "complete" | "error"
    ts: str
    elapsed_s: float
    details: dict[str, Any]
