"""Process Repository - Transactional data access for processes and step instances"""
from typing import Any, Dict, List, Optional, Sequence
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from .mongo_client import get_client, get_collection, to_document, PROCESSES, PROCESS_STEPS
from .template_repo import TemplateRepository
from .base import build_query_filters
from ..domain.models import (
    ProcessInstance, ProcessStepInstance, StepContext, TransitionPlan
)
from ..domain.enums import ProcessStatus
from ..domain.errors import ProcessNotFoundError, StepNotPendingError, ProcessNotActiveError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class ProcessRepository:
    """
    Repository for process instances and their step instances

    Every write spanning several documents runs inside a MongoDB
    multi-document transaction (replica set required).
    """

    def __init__(self, template_repo: Optional[TemplateRepository] = None):
        self._processes: Collection = get_collection(PROCESSES)
        self._steps: Collection = get_collection(PROCESS_STEPS)
        self._template_repo = template_repo or TemplateRepository()

    # =========================================================================
    # Writes
    # =========================================================================

    def create_process_with_steps(
        self,
        process: ProcessInstance,
        steps: Sequence[ProcessStepInstance]
    ) -> ProcessInstance:
        """Insert process and all step instances in one transaction"""
        process_doc = to_document(process, process.process_id)
        step_docs = [to_document(step, step.step_instance_id) for step in steps]

        def _insert(session: ClientSession) -> None:
            self._processes.insert_one(process_doc, session=session)
            if step_docs:
                self._steps.insert_many(step_docs, session=session)

        with get_client().start_session() as session:
            session.with_transaction(_insert)

        logger.info(
            f"Persisted process {process.process_id} with {len(step_docs)} steps",
            extra={"process_id": process.process_id}
        )
        return process

    def apply_transition(self, plan: TransitionPlan) -> ProcessInstance:
        """
        Apply a transition plan atomically

        The process update is conditional on the process still accepting
        actions, and each step update on the step still having its expected
        status; a miss aborts the whole transaction.
        """
        def _apply(session: ClientSession) -> Dict[str, Any]:
            process_doc = self._processes.find_one_and_update(
                {
                    "_id": plan.process_id,
                    "status": {"$in": [s.value for s in plan.expected_process_statuses]},
                },
                {"$set": {"status": plan.process_status.value, "updated_at": plan.updated_at}},
                return_document=ReturnDocument.AFTER,
                session=session
            )
            if process_doc is None:
                current = self._processes.find_one({"_id": plan.process_id}, session=session)
                if current is None:
                    raise ProcessNotFoundError(f"Process not found: {plan.process_id}")
                raise ProcessNotActiveError(
                    "Process no longer accepts step actions",
                    details={"process_id": plan.process_id, "status": current["status"]}
                )

            for update in plan.step_updates:
                changes: Dict[str, Any] = {
                    "status": update.status.value,
                    "acted_at": update.acted_at,
                }
                if update.acted_by is not None:
                    changes["acted_by"] = update.acted_by
                if update.comments is not None:
                    changes["comments"] = update.comments

                matched = self._steps.find_one_and_update(
                    {
                        "_id": update.step_instance_id,
                        "process_id": plan.process_id,
                        "status": update.expected_status.value,
                    },
                    {"$set": changes},
                    session=session
                )
                if matched is None:
                    raise StepNotPendingError(
                        "Step is not pending",
                        details={"step_id": update.step_instance_id}
                    )
            return process_doc

        with get_client().start_session() as session:
            process_doc = session.with_transaction(_apply)

        return self._process_from_doc(process_doc)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_step_with_context(self, step_instance_id: str) -> Optional[StepContext]:
        """Get step with its process, ordered sibling steps and current template"""
        step_doc = self._steps.find_one({"_id": step_instance_id})
        if step_doc is None:
            return None
        step = self._step_from_doc(step_doc)

        process = self.get_process(step.process_id)
        if process is None:
            logger.warning(
                f"Step {step_instance_id} references missing process {step.process_id}",
                extra={"step_id": step_instance_id, "process_id": step.process_id}
            )
            return None

        return StepContext(
            step=step,
            process=process,
            steps=self.get_process_steps(process.process_id),
            template=self._template_repo.get_template_with_steps(process.template_id)
        )

    def get_process(self, process_id: str) -> Optional[ProcessInstance]:
        """Get process by ID"""
        doc = self._processes.find_one({"_id": process_id})
        return self._process_from_doc(doc) if doc else None

    def get_process_steps(self, process_id: str) -> List[ProcessStepInstance]:
        """Get step instances ordered by step_order"""
        cursor = self._steps.find({"process_id": process_id}).sort("step_order", ASCENDING)
        return [self._step_from_doc(doc) for doc in cursor]

    def list_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 20
    ) -> List[ProcessInstance]:
        """List processes, newest first"""
        query = self._query(status, template_id, created_by)
        cursor = self._processes.find(query).sort("created_at", DESCENDING).skip(skip).limit(limit)
        return [self._process_from_doc(doc) for doc in cursor]

    def count_processes(
        self,
        status: Optional[ProcessStatus] = None,
        template_id: Optional[str] = None,
        created_by: Optional[str] = None
    ) -> int:
        """Count processes"""
        return self._processes.count_documents(self._query(status, template_id, created_by))

    def _query(
        self,
        status: Optional[ProcessStatus],
        template_id: Optional[str],
        created_by: Optional[str]
    ) -> Dict[str, Any]:
        return build_query_filters(
            status=status.value if status else None,
            template_id=template_id,
            created_by=created_by
        )

    @staticmethod
    def _process_from_doc(doc: Dict[str, Any]) -> ProcessInstance:
        doc.pop("_id", None)
        return ProcessInstance.model_validate(doc)

    @staticmethod
    def _step_from_doc(doc: Dict[str, Any]) -> ProcessStepInstance:
        doc.pop("_id", None)
        return ProcessStepInstance.model_validate(doc)
