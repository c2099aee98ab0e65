"""Template Repository - Data access for workflow templates"""
from typing import Any, Dict, List, Optional
from pymongo.collection import Collection
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .mongo_client import get_collection, to_document, TEMPLATES
from ..domain.models import WorkflowTemplate
from ..domain.enums import TemplateStatus
from ..domain.errors import TemplateNotFoundError, ConcurrencyError, ValidationError
from ..utils.time import utc_now
from ..utils.logger import get_logger

logger = get_logger(__name__)


class TemplateRepository:
    """Repository for workflow templates; steps and form schema are embedded"""

    def __init__(self):
        self._templates: Collection = get_collection(TEMPLATES)

    def create_template(self, template: WorkflowTemplate) -> WorkflowTemplate:
        """Create a new workflow template"""
        try:
            self._templates.insert_one(to_document(template, template.template_id))
        except DuplicateKeyError:
            raise ValidationError(f"Workflow template {template.template_id} already exists")
        logger.info(
            f"Created template: {template.template_id}",
            extra={"template_id": template.template_id}
        )
        return template

    def get_template_with_steps(self, template_id: str) -> Optional[WorkflowTemplate]:
        """Get template by ID with steps and form schema"""
        doc = self._templates.find_one({"_id": template_id})
        return self._from_doc(doc) if doc else None

    def replace_template(self, template: WorkflowTemplate, expected_version: int) -> WorkflowTemplate:
        """
        Swap the stored definition for a new one in a single document write

        Raises:
            TemplateNotFoundError: Template does not exist
            ConcurrencyError: Stored version moved on since it was read
        """
        result = self._templates.find_one_and_replace(
            {"_id": template.template_id, "version": expected_version},
            to_document(template, template.template_id),
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            self._raise_missing_or_conflict(template.template_id, expected_version)
        logger.info(
            f"Replaced template {template.template_id} (version {template.version})",
            extra={"template_id": template.template_id}
        )
        return self._from_doc(result)

    def update_status(self, template_id: str, status: TemplateStatus) -> WorkflowTemplate:
        """Change lifecycle status"""
        result = self._templates.find_one_and_update(
            {"_id": template_id},
            {"$set": {"status": status.value, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            raise TemplateNotFoundError(f"Workflow template not found: {template_id}")
        return self._from_doc(result)

    def list_templates(
        self,
        status: Optional[TemplateStatus] = None,
        skip: int = 0,
        limit: int = 50
    ) -> List[WorkflowTemplate]:
        """List templates, most recently updated first"""
        cursor = (
            self._templates.find(self._query(status))
            .sort("updated_at", DESCENDING)
            .skip(skip)
            .limit(limit)
        )
        return [self._from_doc(doc) for doc in cursor]

    def count_templates(self, status: Optional[TemplateStatus] = None) -> int:
        """Count templates"""
        return self._templates.count_documents(self._query(status))

    def delete_template(self, template_id: str) -> bool:
        """Delete a template"""
        result = self._templates.delete_one({"_id": template_id})
        return result.deleted_count == 1

    def _query(self, status: Optional[TemplateStatus]) -> Dict[str, Any]:
        return {"status": status.value} if status else {}

    def _raise_missing_or_conflict(self, template_id: str, expected_version: int) -> None:
        if self._templates.count_documents({"_id": template_id}, limit=1) == 0:
            raise TemplateNotFoundError(f"Workflow template not found: {template_id}")
        raise ConcurrencyError(
            "Workflow template was modified by another request",
            details={"template_id": template_id, "expected_version": expected_version}
        )

    @staticmethod
    def _from_doc(doc: Dict[str, Any]) -> WorkflowTemplate:
        doc.pop("_id", None)
        return WorkflowTemplate.model_validate(doc)
