"""
pipecrm - account pipeline tracker

Accounts move through configurable stages with task and onboarding
checklists, backed by a local cache and an optional remote table.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from pipecrm.core.accounts.models import Account, ChecklistItem, Progress
from pipecrm.core.accounts.store import AccountStore
from pipecrm.core.config.models import PipecrmConfig

__all__ = ["Account", "AccountStore", "ChecklistItem", "PipecrmConfig", "Progress", "__version__"]
