# src/container.py — v1
"""Dependency container: every collaborator built once at startup.

Components receive their collaborators explicitly; nothing reads global
state. Tests build a container with in-process backends and a scripted
LLM factory through the keyword overrides of ``build_container``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from manuscript_pipeline.cache.artifact_cache import ArtifactCache
from manuscript_pipeline.cache.base_cache_store import BaseCacheStore
from manuscript_pipeline.cache.cache_factory import create_cache_store
from manuscript_pipeline.config.settings import Settings
from manuscript_pipeline.core.clock import Clock, SystemClock
from manuscript_pipeline.core.state_machine import ManuscriptStateMachine
from manuscript_pipeline.db.artifact_index import ArtifactIndex
from manuscript_pipeline.db.audit_repo import AuditLog
from manuscript_pipeline.db.cost_ledger import CostLedger
from manuscript_pipeline.db.database import BaseDatabase
from manuscript_pipeline.db.database_factory import create_database
from manuscript_pipeline.db.job_repo import JobRepository
from manuscript_pipeline.db.manuscript_repo import ManuscriptRepository
from manuscript_pipeline.db.schema import apply_schema
from manuscript_pipeline.db.usage_repo import UsageRepository
from manuscript_pipeline.ingest.ingestor import Ingestor
from manuscript_pipeline.ingest.submitter import JobSubmitter
from manuscript_pipeline.llm.base_client import BaseLLMClient
from manuscript_pipeline.pipeline.llm_factory import LLMFactory
from manuscript_pipeline.pipeline.orchestrator import AgentOrchestrator
from manuscript_pipeline.pipeline.publisher import ArtifactPublisher
from manuscript_pipeline.pipeline.registry import AgentRegistry
from manuscript_pipeline.pipeline.runner import StageRunner
from manuscript_pipeline.pipeline.worker import Worker
from manuscript_pipeline.queue.base_queue import BaseJobQueue
from manuscript_pipeline.queue.queue_factory import create_job_queue
from manuscript_pipeline.status.tracker import ReportIndex, StatusTracker
from manuscript_pipeline.storage.base_object_store import BaseObjectStore
from manuscript_pipeline.storage.store_factory import create_object_store

logger = logging.getLogger(__name__)


@dataclass
class Container:
    settings: Settings
    clock: Clock
    database: BaseDatabase
    objects: BaseObjectStore
    cache_store: BaseCacheStore
    state_store: BaseCacheStore
    queue: BaseJobQueue
    llm_factory: Callable[[str], BaseLLMClient]
    manuscripts: ManuscriptRepository
    jobs: JobRepository
    artifacts: ArtifactIndex
    usage: UsageRepository
    audit: AuditLog
    costs: CostLedger
    state_machine: ManuscriptStateMachine
    status: StatusTracker
    report_index: ReportIndex
    artifact_cache: ArtifactCache
    publisher: ArtifactPublisher
    registry: AgentRegistry
    submitter: JobSubmitter
    ingestor: Ingestor
    orchestrator: AgentOrchestrator
    worker: Worker

    async def start(self) -> None:
        """Apply the relational schema (idempotent)."""
        await apply_schema(self.database)
        logger.info(
            "Container started: db=%s objects=%s queue=%s cache=%s",
            self.settings.database, self.settings.object_store,
            self.settings.queue_backend, self.settings.cache_backend,
        )

    async def close(self) -> None:
        await self.queue.close()
        await self.cache_store.close()
        await self.state_store.close()
        self.objects.close()
        await self.database.close()


def build_container(
    settings: Settings,
    clock: Clock | None = None,
    database: BaseDatabase | None = None,
    objects: BaseObjectStore | None = None,
    cache_store: BaseCacheStore | None = None,
    state_store: BaseCacheStore | None = None,
    queue: BaseJobQueue | None = None,
    llm_factory: Callable[[str], BaseLLMClient] | None = None,
    registry: AgentRegistry | None = None,
) -> Container:
    """Construct every component from ``settings``; keyword overrides win."""
    clock = clock or SystemClock()
    database = database or create_database(settings)
    objects = objects or create_object_store(settings)
    cache_store = cache_store or create_cache_store(settings, namespace="cache", clock=clock)
    state_store = state_store or create_cache_store(settings, namespace="state", clock=clock)
    queue = queue or create_job_queue(settings, clock=clock)
    default_factory = LLMFactory(settings)
    llm: Any = llm_factory or default_factory
    registry = registry or AgentRegistry().load_all()

    manuscripts = ManuscriptRepository(database, clock)
    jobs = JobRepository(database, clock)
    artifacts = ArtifactIndex(database)
    usage = UsageRepository(database, clock, settings.plan_limits)
    audit = AuditLog(database, clock)
    costs = CostLedger(database, clock)
    state_machine = ManuscriptStateMachine(manuscripts)
    status = StatusTracker(state_store, clock, settings.status_ttl_seconds)
    report_index = ReportIndex(state_store, settings.report_id_ttl_seconds)
    artifact_cache = ArtifactCache(
        cache_store, manuscripts, artifacts, jobs, status, objects, settings.cache_ttl_seconds
    )
    publisher = ArtifactPublisher(objects, artifacts, artifact_cache, clock)
    submitter = JobSubmitter(jobs, status, report_index, queue, clock)
    ingestor = Ingestor(
        objects,
        manuscripts,
        usage,
        audit,
        state_machine,
        submitter,
        clock,
        max_file_bytes=settings.max_file_bytes,
        max_pages=settings.max_pages,
        default_genre=settings.default_genre,
        default_style_guide=settings.default_style_guide,
    )
    runner = StageRunner(
        registry,
        llm,
        publisher,
        costs,
        status,
        stage_deadline_s=settings.stage_deadline_seconds,
    )
    orchestrator = AgentOrchestrator(
        database,
        manuscripts,
        jobs,
        artifacts,
        usage,
        costs,
        state_machine,
        status,
        objects,
        artifact_cache,
        registry,
        runner,
        clock,
        retry_policy=default_factory.retry_policy(),
    )
    worker = Worker(
        queue,
        orchestrator,
        status,
        jobs,
        retry_delay_seconds=settings.queue_retry_delay_seconds,
        poll_interval=settings.queue_poll_interval_seconds,
    )
    return Container(
        settings=settings,
        clock=clock,
        database=database,
        objects=objects,
        cache_store=cache_store,
        state_store=state_store,
        queue=queue,
        llm_factory=llm,
        manuscripts=manuscripts,
        jobs=jobs,
        artifacts=artifacts,
        usage=usage,
        audit=audit,
        costs=costs,
        state_machine=state_machine,
        status=status,
        report_index=report_index,
        artifact_cache=artifact_cache,
        publisher=publisher,
        registry=registry,
        submitter=submitter,
        ingestor=ingestor,
        orchestrator=orchestrator,
        worker=worker,
    )
