"""Observability — structured logging with run correlation."""

from evpages.observability.logging import get_run_id, run_context, setup_logging

__all__ = ["get_run_id", "run_context", "setup_logging"]
