"""Pure scoring: aggregation, page classification, SU score, confidence, embeddings."""
