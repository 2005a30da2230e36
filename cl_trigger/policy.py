"""Decides whether a change revision needs a new CI run."""

import logging

from .models import ChangeMetadata


logger = logging.getLogger(__name__)

TRYBOT_LABEL = "TryBot-Result"
APPROVED_VALUE = 1


def should_trigger(
    meta: ChangeMetadata,
    requested_hash: str,
    force: bool = False,
    label: str = TRYBOT_LABEL,
    approved_value: int = APPROVED_VALUE,
) -> bool:
    """Return whether a trigger should be sent for a revision of ``meta``.

    The current revision of a change that already carries an approving
    ``label`` vote is skipped unless ``force`` is set. Older revisions are
    always triggered.

    Args:
        meta: Change snapshot from Gerrit.
        requested_hash: Revision to run, or "" for the current one.
        force: Trigger regardless of existing votes.
        label: Label that records CI results.
        approved_value: Vote value meaning the CI run passed.
    """
    if force:
        return True

    current = meta.latest_revision
    if requested_hash and requested_hash != current:
        return True

    if approved_value in meta.votes(label):
        logger.debug(f"Change {meta.number} revision {current} already has {label}{approved_value:+d}")
        return False
    return True
