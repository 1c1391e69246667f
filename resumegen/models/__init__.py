# Database models package
from resumegen.models.user import User
from resumegen.models.profile import Profile
from resumegen.models.application import Application
from resumegen.models.generated_document import GeneratedDocument, DocumentStatus
from resumegen.models.document_job import DocumentJob, JobStatus

__all__ = [
    "User",
    "Profile",
    "Application",
    "GeneratedDocument",
    "DocumentStatus",
    "DocumentJob",
    "JobStatus",
]
