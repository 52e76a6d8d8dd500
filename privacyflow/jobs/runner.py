"""
Entry point for the periodic job trigger.

Runs the export processor and then the deletion processor. Each half is
guarded so a failure in one never prevents the other from running.
"""

import logging
from typing import Any

from privacyflow.identity import IdentityProvider
from privacyflow.jobs.deletions import process_deletion_requests
from privacyflow.jobs.exports import process_export_requests
from privacyflow.storage import BlobStorage

logger = logging.getLogger(__name__)


async def process_pending_jobs(
    storage: BlobStorage | None = None,
    identity: IdentityProvider | None = None,
) -> dict[str, Any]:
    """Process one batch of exports and one batch of deletions."""
    logger.info("[Jobs] Starting background job processing...")
    summary: dict[str, Any] = {"exports": None, "deletions": None}

    try:
        exports = await process_export_requests(storage=storage, identity=identity)
        summary["exports"] = exports.as_dict()
    except Exception as e:
        logger.error(f"[Jobs] Export processing error: {e}", exc_info=True)

    try:
        deletions = await process_deletion_requests(storage=storage, identity=identity)
        summary["deletions"] = deletions.as_dict()
    except Exception as e:
        logger.error(f"[Jobs] Deletion processing error: {e}", exc_info=True)

    logger.info("[Jobs] Background job processing complete")
    return summary
