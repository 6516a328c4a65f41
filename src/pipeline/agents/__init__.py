# src/pipeline/agents/__init__.py — v1
