"""Orchestrator components.

Provides:
- Settings loaded from .env
- Structured logging
- The workflow state machine and its tool surface
- A small CLI surface
"""
