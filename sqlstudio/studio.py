import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .config import StudioConfig
from .db.catalog import AssignmentCatalog, Catalog
from .db.connector import SandboxPool
from .hints.generator import HintGenerator, fallback_hint
from .safety import QueryValidator
from .sandbox.executor import SandboxExecutor
from .schemas import AssignmentSummary, Assignment, ExecutionOutcome, Hint, HintLevel

logger = logging.getLogger(__name__)


class Studio:
    """
    Owns the sandbox pool and the collaborators around it for the lifetime
    of the process.
    """

    def __init__(
        self,
        config: StudioConfig,
        pool: Optional[SandboxPool] = None,
        catalog: Optional[Catalog] = None,
        hints: Optional[HintGenerator] = None,
    ):
        self.config = config

        self.pool = pool or SandboxPool.from_config(config.database)
        self.validator = QueryValidator(row_limit=config.sandbox.row_limit)
        self.executor = SandboxExecutor(
            self.pool,
            statement_timeout_ms=config.sandbox.statement_timeout_ms,
            lock_timeout_ms=config.sandbox.lock_timeout_ms,
        )
        self.catalog = catalog or AssignmentCatalog(
            config.catalog.mongo_uri,
            config.catalog.database,
            config.catalog.collection,
        )
        self.hints = hints or HintGenerator(config.model)

    async def run_sandboxed_query(self, sql: Any) -> ExecutionOutcome:
        """
        Validates sql and, if admissible, runs it in the sandbox. Rejected
        queries never lease a connection.
        """
        verdict = self.validator.validate(sql)
        if not verdict.valid:
            if self.config.verbose:
                logger.info(f"[Sandbox] Rejected query: {verdict.error}")
            return ExecutionOutcome.from_verdict(verdict)

        if self.config.verbose:
            logger.info(f"[Sandbox] Executing: {verdict.sanitized_sql}")
        return await self.executor.execute(verdict.sanitized_sql)

    async def list_assignments(self) -> List[AssignmentSummary]:
        return await asyncio.to_thread(self.catalog.list_assignments)

    async def get_assignment(self, assignment_id: str) -> Optional[Assignment]:
        return await asyncio.to_thread(self.catalog.get_assignment, assignment_id)

    async def get_hint(
        self,
        assignment_id: str,
        sql: Optional[str] = None,
        level: HintLevel = HintLevel.LOW,
    ) -> Optional[Hint]:
        """
        Hint for an assignment, or None when the assignment does not exist.
        Falls back to a generic hint when the LLM cannot produce one.
        """
        assignment = await self.get_assignment(assignment_id)
        if assignment is None:
            return None

        hint = await self.hints.generate(assignment, sql or "", level)
        if hint.error:
            return fallback_hint(assignment)
        return hint

    async def health(self) -> Dict[str, str]:
        pg_healthy = await self.pool.ping()
        mongo_healthy = await asyncio.to_thread(self.catalog.ping)
        return {
            "status": "healthy" if pg_healthy and mongo_healthy else "degraded",
            "postgres": "connected" if pg_healthy else "disconnected",
            "mongodb": "connected" if mongo_healthy else "disconnected",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def aclose(self) -> None:
        await self.pool.close()
        self.catalog.close()
        logger.info("Database connections closed")

    async def __aenter__(self) -> "Studio":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
