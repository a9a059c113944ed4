"""
Module: procurement_services
Responsibility:
    Stateful services shared by the procurement modules: capability checks,
    workflow transition execution, document storage, the status change feed,
    and the error-translating gateway.

Architecture position:
    Services layer.  May import procurement_kernel and procurement_engines.
    MUST NOT import procurement_modules.
"""

from procurement_services.authority import (
    CAPABILITIES,
    allowed_roles,
    check_capability,
    require_capability,
)
from procurement_services.change_feed import StatusChangeFeed
from procurement_services.document_store import (
    DocumentStore,
    DocumentUpload,
    InMemoryDocumentStore,
    LocalFileDocumentStore,
    scoped_path,
    validate_upload,
)
from procurement_services.gateway import (
    OperationResult,
    OperationStatus,
    execute_operation,
    safe_error_message,
)
from procurement_services.workflow_executor import (
    GuardExecutor,
    WorkflowExecutor,
    default_guard_executor,
)

__all__ = [
    "CAPABILITIES",
    "allowed_roles",
    "check_capability",
    "require_capability",
    "StatusChangeFeed",
    "DocumentStore",
    "DocumentUpload",
    "InMemoryDocumentStore",
    "LocalFileDocumentStore",
    "scoped_path",
    "validate_upload",
    "OperationResult",
    "OperationStatus",
    "execute_operation",
    "safe_error_message",
    "GuardExecutor",
    "WorkflowExecutor",
    "default_guard_executor",
]
