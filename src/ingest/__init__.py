# src/ingest/__init__.py — v1
