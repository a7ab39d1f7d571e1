# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import (
    user, employee, appraisal, appraisal_comment, audit_log, notification
)

# Explicit class exports for cleaner imports
from .user import User, UserRole
from .employee import Employee
from .appraisal import Appraisal
from .appraisal_comment import AppraisalComment
from .notification import Notification

__all__ = [
    "User",
    "UserRole",
    "Employee",
    "Appraisal",
    "AppraisalComment",
    "Notification",
]
