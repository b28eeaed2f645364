"""Run orchestration for ingestion batches and delivery cycles."""
