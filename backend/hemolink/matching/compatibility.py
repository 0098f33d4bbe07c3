"""
Blood type compatibility table.
Single source of truth for which donor types can serve which recipients.
"""

from __future__ import annotations

from typing import Dict, FrozenSet

BLOOD_TYPES: tuple[str, ...] = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")

# Recipient -> donor types it can receive from
COMPATIBLE_DONORS: Dict[str, FrozenSet[str]] = {
    "A+": frozenset({"A+", "A-", "O+", "O-"}),
    "A-": frozenset({"A-", "O-"}),
    "B+": frozenset({"B+", "B-", "O+", "O-"}),
    "B-": frozenset({"B-", "O-"}),
    "AB+": frozenset(BLOOD_TYPES),  # Universal recipient
    "AB-": frozenset({"A-", "B-", "AB-", "O-"}),
    "O+": frozenset({"O+", "O-"}),
    "O-": frozenset({"O-"}),
}

# Donor -> recipient types it can give to, derived from the table above
COMPATIBLE_RECIPIENTS: Dict[str, FrozenSet[str]] = {
    donor_type: frozenset(
        recipient for recipient, donors in COMPATIBLE_DONORS.items() if donor_type in donors
    )
    for donor_type in BLOOD_TYPES
}


def compatible_donor_types(recipient_blood_type: str | None) -> FrozenSet[str]:
    """
    Get the blood types that can donate to a recipient.

    Args:
        recipient_blood_type: Recipient's blood type (e.g., 'AB-')

    Returns:
        Frozen set of donor blood types; empty for an unknown type
    """
    if recipient_blood_type is None:
        return frozenset()
    return COMPATIBLE_DONORS.get(recipient_blood_type, frozenset())


def compatible_recipient_types(donor_blood_type: str | None) -> FrozenSet[str]:
    if donor_blood_type is None:
        return frozenset()
    return COMPATIBLE_RECIPIENTS.get(donor_blood_type, frozenset())


def is_compatible(donor_blood_type: str, recipient_blood_type: str) -> bool:
    return donor_blood_type in compatible_donor_types(recipient_blood_type)
