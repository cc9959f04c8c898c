"""Lifecycle engine: classification, state tracking, deletion and orchestration."""
