"""
Payroll rule set lifecycle status.

Rule sets are append-only.  Each version names its predecessor.  Only
PUBLISHED sets are returned by ``get_active_rules``; SUPERSEDED sets stay
on disk so historical quotes can be re-costed with the exact version that
priced them.  A rule set file without a status is a DRAFT.
"""

from enum import Enum, unique


@unique
class ConfigStatus(str, Enum):
    DRAFT = "draft"
    REVIEWED = "reviewed"
    APPROVED = "approved"
    PUBLISHED = "published"
    SUPERSEDED = "superseded"
