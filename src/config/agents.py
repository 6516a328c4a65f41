# src/config/agents.py — v2
"""Declarative agent registry configuration.

Lists every agent the orchestrator can schedule. The plan for a job is
derived from the agents' declared dependencies (pipeline/dag_builder.py).
"""

from __future__ import annotations

# Fully qualified class paths for dynamic import by pipeline/registry.py.
AGENT_REGISTRY: list[str] = [
    # Editorial
    "manuscript_pipeline.pipeline.agents.editorial.DevelopmentalAgent",
    "manuscript_pipeline.pipeline.agents.editorial.LineEditingAgent",
    "manuscript_pipeline.pipeline.agents.editorial.CopyEditingAgent",
    # Marketing assets (batch A)
    "manuscript_pipeline.pipeline.agents.marketing.BookDescriptionAgent",
    "manuscript_pipeline.pipeline.agents.marketing.KeywordAgent",
    "manuscript_pipeline.pipeline.agents.marketing.CategoryAgent",
    "manuscript_pipeline.pipeline.agents.marketing.AuthorBioAgent",
    "manuscript_pipeline.pipeline.agents.marketing.BackMatterAgent",
    # Audiobook (batch B)
    "manuscript_pipeline.pipeline.agents.audiobook.NarrationAgent",
    "manuscript_pipeline.pipeline.agents.audiobook.PronunciationAgent",
    "manuscript_pipeline.pipeline.agents.audiobook.TimingAgent",
    "manuscript_pipeline.pipeline.agents.audiobook.SampleAgent",
    "manuscript_pipeline.pipeline.agents.audiobook.AudiobookMetadataAgent",
]
