"""
Merge Planner

The single policy decision point for which duplicate survives: the profile
with the lowest surrogate id is canonical, and the identity it references is
the one identity kept for the email.
"""

from typing import Sequence

from .errors import DataIntegrityError
from .models import DuplicateGroup, ProfileMatch, ResolutionPlan


def select_canonical(matches: Sequence[ProfileMatch]) -> ProfileMatch:
    """Pick the match with the minimum profile id."""
    if not matches:
        raise ValueError("Cannot select a canonical profile from an empty match list")
    return min(matches, key=lambda m: m.profile_id)


def plan_merge(group: DuplicateGroup, matches: Sequence[ProfileMatch]) -> ResolutionPlan:
    """
    Build the resolution plan for one duplicate group.

    Args:
        group: Identity keys sharing one email
        matches: Profiles resolved for those keys (non-empty)

    Returns:
        ResolutionPlan with the canonical profile and everything to delete

    Raises:
        DataIntegrityError: If the canonical profile references an identity
            outside the group
    """
    canonical = select_canonical(matches)

    if canonical.subject_ref not in group.identity_keys:
        raise DataIntegrityError(
            f"Canonical profile {canonical.profile_id} for '{group.email}' references "
            f"identity {canonical.subject_ref}, which is not in the duplicate group"
        )

    profiles_to_delete = tuple(
        sorted(
            (m for m in matches if m.profile_id != canonical.profile_id),
            key=lambda m: m.profile_id
        )
    )
    identities_to_delete = tuple(
        key for key in group.identity_keys if key != canonical.subject_ref
    )

    return ResolutionPlan(
        group=group,
        canonical=canonical,
        profiles_to_delete=profiles_to_delete,
        identities_to_delete=identities_to_delete,
    )
