"""Judge-backed evaluators: panel, escalation, phase evaluators, confidence pipeline."""
