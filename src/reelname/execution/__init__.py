"""Plan execution for reelname."""

from .executor import ApplyExecutor
from .models import ApplyError, ApplyResult, ApplyWarning

__all__ = ["ApplyExecutor", "ApplyError", "ApplyResult", "ApplyWarning"]
