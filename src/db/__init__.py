# src/db/__init__.py — v1
