"""Run lifecycle for the orchestrator."""

from toolstream.lifecycle.runs import Orchestrator

__all__ = ["Orchestrator"]
