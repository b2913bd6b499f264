import pytest

from core.db.applications import can_transition
from core.db.messaging import MAX_MESSAGE_LENGTH, ordered_pair, validate_message
from core.errors import ValidationError


def test_ordered_pair_sorts_ids():
    assert ordered_pair(9, 2) == (2, 9)
    assert ordered_pair("2", 9) == (2, 9)


def test_cannot_message_yourself():
    with pytest.raises(ValidationError) as exc:
        ordered_pair(4, 4)
    assert exc.value.errors == ["You cannot message yourself."]


def test_validate_message_trims():
    assert validate_message("  hello  ") == "hello"


@pytest.mark.parametrize("content", [None, "", "   \n"])
def test_validate_message_rejects_empty(content):
    with pytest.raises(ValidationError):
        validate_message(content)


def test_validate_message_length_limit():
    assert validate_message("x" * MAX_MESSAGE_LENGTH) == "x" * MAX_MESSAGE_LENGTH
    with pytest.raises(ValidationError) as exc:
        validate_message("x" * (MAX_MESSAGE_LENGTH + 1))
    assert str(MAX_MESSAGE_LENGTH) in exc.value.message


@pytest.mark.parametrize(
    "current,new,allowed",
    [
        ("pending", "reviewing", True),
        ("pending", "rejected", True),
        ("pending", "accepted", False),
        ("reviewing", "accepted", True),
        ("reviewing", "pending", False),
        ("accepted", "rejected", False),
        ("withdrawn", "reviewing", False),
        ("rejected", "reviewing", False),
    ],
)
def test_application_transitions(current, new, allowed):
    assert can_transition(current, new) is allowed
