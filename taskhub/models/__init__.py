"""
ORM model package. Import all models here so Alembic autogenerate
can discover every table through the shared Base metadata.
"""
from taskhub.models.user import User  # noqa: F401
from taskhub.models.team import Team, TeamMember  # noqa: F401
from taskhub.models.project import Project, ProjectMember  # noqa: F401
from taskhub.models.task import Task  # noqa: F401
from taskhub.models.subtask import Subtask  # noqa: F401
from taskhub.models.comment import Comment  # noqa: F401
from taskhub.models.attachment import Attachment  # noqa: F401
from taskhub.models.notification import Notification  # noqa: F401
from taskhub.models.activity_log import ActivityLog  # noqa: F401
