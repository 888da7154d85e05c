"""Caption regeneration pipeline package.

- RegenerationOptions: policy values (TTL, pacing, page size, model, prompt)
- RegenerationController: single-slot cycle runner over the working cache
- CycleSummary / CycleOutcome / OutcomeStatus: per-cycle results
"""

from .models import (
    OutcomeStatus,
    CycleOutcome,
    CycleSummary,
    RegenerationOptions,
)
from .controller import RegenerationController

__all__ = [
    "OutcomeStatus",
    "CycleOutcome",
    "CycleSummary",
    "RegenerationOptions",
    "RegenerationController",
]
