from __future__ import annotations

from datetime import datetime, timedelta

from ..models.base import utcnow
from ..models.user import DonorProfile, UserProfile

DONATION_COOLDOWN_DAYS = 56
DONATION_COOLDOWN = timedelta(days=DONATION_COOLDOWN_DAYS)


def is_eligible(user: UserProfile, now: datetime | None = None) -> bool:
    """
    Check whether a user may donate right now.

    Criteria:
    - User is a donor
    - Donor is available and verified
    - No donation recorded, or the last one was at least 56 days ago

    Always evaluated against the current clock; never cache the result.
    """
    if not isinstance(user, DonorProfile):
        return False
    if not user.is_available or not user.is_verified:
        return False

    if user.last_donation_date is not None:
        now = now or utcnow()
        if now - user.last_donation_date < DONATION_COOLDOWN:
            return False

    return True


def next_eligible_date(donor: DonorProfile) -> datetime | None:
    """Date the donation cooldown ends, or None if the donor never donated."""
    if donor.last_donation_date is None:
        return None
    return donor.last_donation_date + DONATION_COOLDOWN
