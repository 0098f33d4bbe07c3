import pytest

from hemolink.matching.compatibility import (
    BLOOD_TYPES,
    compatible_donor_types,
    compatible_recipient_types,
    is_compatible,
)


@pytest.mark.parametrize(
    "recipient, donors",
    [
        ("A+", {"A+", "A-", "O+", "O-"}),
        ("A-", {"A-", "O-"}),
        ("B+", {"B+", "B-", "O+", "O-"}),
        ("B-", {"B-", "O-"}),
        ("AB+", set(BLOOD_TYPES)),
        ("AB-", {"A-", "B-", "AB-", "O-"}),
        ("O+", {"O+", "O-"}),
        ("O-", {"O-"}),
    ],
)
def test_compatible_donor_types(recipient, donors):
    assert compatible_donor_types(recipient) == donors


def test_o_negative_gives_to_everyone():
    assert compatible_recipient_types("O-") == set(BLOOD_TYPES)
    for recipient in BLOOD_TYPES:
        assert is_compatible("O-", recipient)


def test_ab_positive_only_gives_to_ab_positive():
    assert compatible_recipient_types("AB+") == {"AB+"}
    assert not is_compatible("AB+", "O+")


@pytest.mark.parametrize("blood_type", ["C+", "", "ab+", None])
def test_unknown_type_has_no_compatible_donors(blood_type):
    assert compatible_donor_types(blood_type) == frozenset()
    assert compatible_recipient_types(blood_type) == frozenset()


def test_recipient_table_is_inverse_of_donor_table():
    for donor in BLOOD_TYPES:
        for recipient in BLOOD_TYPES:
            assert (recipient in compatible_recipient_types(donor)) == (donor in compatible_donor_types(recipient))


def test_every_type_can_receive_its_own_type():
    for blood_type in BLOOD_TYPES:
        assert is_compatible(blood_type, blood_type)
