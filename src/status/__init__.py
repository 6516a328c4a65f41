# src/status/__init__.py — v1
