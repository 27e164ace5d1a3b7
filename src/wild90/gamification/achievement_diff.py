"""Achievement diff engine.

The backend only awards whatever a user is eligible for; it never says which
grants a given write produced. The scan pipeline snapshots the user's grants
before the triggering write and again after it, and the difference is what
the scan earned.

Concurrent writes from another device for the same user can land between the
two snapshots, so a grant may be attributed to the wrong scan. That is a
cosmetic misattribution of the reveal only; the grant itself is correct.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping

from wild90.ledger.records import Achievement, AchievementGrant


def grant_delta(before: Iterable[str], after: Iterable[str]) -> set[str]:
    """Ids present after the write but not before it."""
    return set(after) - set(before)


def new_grants(
    before: Iterable[AchievementGrant],
    after: Iterable[AchievementGrant],
) -> list[AchievementGrant]:
    """Grants new in ``after``, most recently granted first."""
    before_ids = {grant.id for grant in before}
    after_list = list(after)
    fresh = grant_delta(before_ids, (grant.id for grant in after_list))
    return sorted(
        (grant for grant in after_list if grant.id in fresh),
        key=lambda grant: grant.granted_at,
        reverse=True,
    )


def diff(
    before: Iterable[AchievementGrant],
    after: Iterable[AchievementGrant],
    achievements: Mapping[str, Achievement],
) -> list[Achievement]:
    """Achievements newly granted between two snapshots, most recent first.

    Grants whose achievement definition is unknown are skipped.
    """
    return [
        achievements[grant.achievement_id]
        for grant in new_grants(before, after)
        if grant.achievement_id in achievements
    ]


def reveal_choice(newly_earned: list[Achievement]) -> Achievement | None:
    """Only the most recent achievement is revealed; the rest show on the profile."""
    return newly_earned[0] if newly_earned else None
