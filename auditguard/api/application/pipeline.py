"""
Application Layer - Audit Pipeline

The three stages shared by the request path and the workflow path:

    AuditInvoker  -> asks the reasoning service and parses its answer
    AuditRecorder -> writes one compliance audit row per finding
    EventEmitter  -> appends the domain event and the pending workflow signal
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import json
import logging

from .ports import ReasoningClient, UnitOfWork
from .prompts import COMPLIANCE_AUDIT_PROMPT
from ..domain.entities import AuditResult, ComplianceAudit, DomainEventRecord, Finding
from ..domain.events import ComplianceAuditCompletedEvent, WorkflowSignal
from ..domain.exceptions import (
    DomainError, EmptyAuditSetError, InvalidModelOutputError,
    PartialPersistenceError, UpstreamUnavailableError,
)
from ..domain.value_objects import AuditStatus, RiskScore


logger = logging.getLogger(__name__)


class AuditInvoker:
    """
    Wraps the external reasoning call.

    The model output is untrusted: anything that is not a JSON object with a
    list of finding objects aborts the run with InvalidModelOutputError before
    a single row is written.
    """

    FINDINGS_KEYS = ("requirements", "findings")

    def __init__(self, client: ReasoningClient, system_prompt: str = COMPLIANCE_AUDIT_PROMPT):
        self.client = client
        self.system_prompt = system_prompt

    async def evaluate(
        self,
        job_id: str,
        job_summary: str,
        telemetry: Optional[Dict[str, Any]] = None,
    ) -> AuditResult:
        """Run one audit request for a job."""
        user_payload = json.dumps({
            "jobId": job_id,
            "jobSummary": job_summary,
            "telemetry": telemetry or {},
        }, default=str)

        raw = await self.client.complete(self.system_prompt, user_payload)
        result = self.parse(job_id, raw)

        logger.info(
            f"Reasoning service returned {len(result.findings)} findings for job {job_id} "
            f"({result.high_risk_count} high risk)"
        )
        return result

    def parse(self, job_id: str, raw: Optional[str]) -> AuditResult:
        """Parse the raw completion into an AuditResult."""
        if raw is None or not str(raw).strip():
            raise InvalidModelOutputError("empty response")

        try:
            document = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise InvalidModelOutputError(f"response is not JSON ({e.__class__.__name__})") from e

        if not isinstance(document, dict):
            raise InvalidModelOutputError("response is not a JSON object")

        items = None
        for key in self.FINDINGS_KEYS:
            if key in document:
                items = document[key]
                break

        if items is None:
            raise InvalidModelOutputError("response has no findings list")
        if not isinstance(items, list):
            raise InvalidModelOutputError("findings is not a list")

        findings = [self._parse_finding(index, item) for index, item in enumerate(items)]
        return AuditResult(job_id=job_id, findings=findings, raw=document)

    def _parse_finding(self, index: int, item: Any) -> Finding:
        if not isinstance(item, dict):
            raise InvalidModelOutputError(f"finding #{index} is not an object")

        requirement_id = self._as_reference(item.get("requirementId"))
        regulation_id = self._as_reference(item.get("regulationId"))
        if not requirement_id and not regulation_id:
            raise InvalidModelOutputError(f"finding #{index} has no requirement reference")

        raw_status = item.get("status")
        status = AuditStatus.from_value(raw_status) if raw_status is not None else AuditStatus.PENDING
        if status is None:
            logger.warning(f"Unknown audit status {raw_status!r} in finding #{index}, using pending")
            status = AuditStatus.PENDING

        remediation = item.get("remediation", item.get("remediationSteps")) or []
        if isinstance(remediation, str):
            remediation = [remediation]
        elif not isinstance(remediation, list):
            remediation = []

        return Finding(
            requirement_id=requirement_id,
            regulation_id=regulation_id,
            status=status,
            risk_score=RiskScore.parse(item.get("riskScore")),
            remediation=[str(step) for step in remediation],
            raw=item,
        )

    @staticmethod
    def _as_reference(value: Any) -> Optional[str]:
        if value is None or isinstance(value, bool):
            return None
        text = str(value).strip()
        return text or None


@dataclass
class RecordOutcome:
    """What an AuditRecorder.persist call actually wrote."""
    inserted_ids: List[str] = field(default_factory=list)
    failed_count: int = 0

    @property
    def is_partial(self) -> bool:
        return self.failed_count > 0 and bool(self.inserted_ids)


class AuditRecorder:
    """
    Persists compliance audit rows.

    Each row is committed on its own so the storage change feed sees rows as
    they land. Insertion of a run is therefore not atomic: a storage failure
    after the first row yields a partial outcome that is logged, not raised.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def persist(
        self,
        company_id: str,
        job_id: str,
        auditor_id: Optional[str],
        findings: List[Finding],
        run_id: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> RecordOutcome:
        """Write one audit row per finding. Returns the inserted ids."""
        if not findings:
            raise EmptyAuditSetError(job_id)

        requirement_ids = await self._resolve_requirement_ids(findings)

        audits = [
            ComplianceAudit.create(
                company_id=company_id,
                job_id=job_id,
                requirement_id=requirement_ids[index],
                status=finding.status,
                audit_data=finding.raw,
                auditor_user_id=auditor_id,
                run_id=run_id,
                idempotency_key=idempotency_key,
            )
            for index, finding in enumerate(findings)
        ]

        inserted: List[str] = []
        for audit in audits:
            try:
                async with self.uow:
                    await self.uow.audits.add(audit)
                    await self.uow.commit()
            except Exception as e:
                failed_count = len(audits) - len(inserted)
                if not inserted:
                    logger.error(
                        f"Failed to insert audits for job {job_id}: {e}",
                        extra={"context": {"job_id": job_id, "company_id": company_id,
                                           "expected": len(audits)}},
                    )
                    raise UpstreamUnavailableError("storage", "failed to store audit results") from e

                error = PartialPersistenceError(job_id, list(inserted), failed_count, str(e))
                logger.error(
                    error.message,
                    extra={"context": {
                        "code": error.code,
                        "job_id": job_id,
                        "company_id": company_id,
                        "run_id": run_id,
                        "inserted_ids": list(inserted),
                        "failed_count": failed_count,
                    }},
                )
                return RecordOutcome(inserted_ids=inserted, failed_count=failed_count)

            inserted.append(audit.id)

        logger.info(f"Stored {len(inserted)} audits for job {job_id}")
        return RecordOutcome(inserted_ids=inserted)

    async def _resolve_requirement_ids(self, findings: List[Finding]) -> List[str]:
        """Map regulation identifiers to catalog ids where the catalog knows them."""
        regulation_ids = sorted({
            f.regulation_id for f in findings
            if not f.requirement_id and f.regulation_id
        })

        catalog = {}
        if regulation_ids:
            try:
                async with self.uow:
                    catalog = await self.uow.requirements.get_by_regulation_ids(regulation_ids)
            except DomainError:
                raise
            except Exception as e:
                raise UpstreamUnavailableError("storage", "failed to read requirement catalog") from e

        resolved = []
        for finding in findings:
            if finding.requirement_id:
                resolved.append(finding.requirement_id)
            elif finding.regulation_id in catalog:
                resolved.append(catalog[finding.regulation_id].id)
            else:
                resolved.append(finding.regulation_id)
        return resolved


class EventEmitter:
    """
    Appends the domain event for a finished run and records the pending
    workflow signal in the outbox, in one transaction.

    Emission is best-effort relative to persistence: failures are logged and
    swallowed, the audit rows stay.
    """

    def __init__(self, uow: UnitOfWork):
        self.uow = uow

    async def emit(
        self,
        company_id: str,
        job_id: str,
        audit_ids: List[str],
        high_risk: int = 0,
        source: str = "request",
        run_id: Optional[str] = None,
        signal: bool = True,
    ) -> Optional[str]:
        """
        Emit ``compliance.audit.completed``.

        Returns the outbox message id of the workflow signal, or None when no
        signal was recorded.
        """
        if not audit_ids:
            logger.warning(f"Refusing to emit audit event for job {job_id}: no persisted audits")
            return None

        event = ComplianceAuditCompletedEvent(
            company_id=company_id,
            job_id=job_id,
            audit_ids=list(audit_ids),
            high_risk=high_risk,
            run_id=run_id,
            source=source,
        )
        record = DomainEventRecord(
            id=event.event_id,
            company_id=company_id,
            event_type=event.event_type,
            payload=event.payload(),
            created_at=event.occurred_at,
        )

        message_id = None
        try:
            async with self.uow:
                await self.uow.events.append(record)
                if signal:
                    message_id = await self.uow.outbox.save(
                        WorkflowSignal.audit_completed(company_id, job_id, audit_ids)
                    )
                await self.uow.commit()
        except Exception as e:
            logger.error(
                f"Failed to emit {event.event_type} for job {job_id}: {e}",
                extra={"context": {
                    "job_id": job_id,
                    "company_id": company_id,
                    "audit_ids": list(audit_ids),
                    "run_id": run_id,
                }},
            )
            return None

        logger.info(f"Emitted {event.event_type} for job {job_id} ({len(audit_ids)} audits)")
        return message_id
