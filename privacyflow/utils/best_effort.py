"""
Best-effort side effects.

Some steps inside otherwise strict flows (dropping login sessions after a
deletion request, removing export files during erasure) must never abort
the parent operation. Each such step is run through ``best_effort``, which
captures and logs the failure and reports it back to the caller.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepResult:
    name: str
    ok: bool
    error: str | None = None
    value: Any = None


async def best_effort(name: str, action: Callable[..., Awaitable[Any]], *args: Any, **kwargs: Any) -> StepResult:
    """Run ``action`` and swallow any exception it raises."""
    try:
        value = await action(*args, **kwargs)
    except Exception as e:
        logger.error(f"Best-effort step '{name}' failed: {e}")
        return StepResult(name=name, ok=False, error=str(e) or type(e).__name__)
    return StepResult(name=name, ok=True, value=value)
