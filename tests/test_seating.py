import pytest

from eventspark.core.errors import ValidationError
from eventspark.services.seating import seat_labels, validate_seat_request


def test_labels_are_rows_of_ten() -> None:
    labels = seat_labels(25)
    assert labels[:10] == [f"A{i}" for i in range(1, 11)]
    assert labels[10] == "B1"
    assert labels[-1] == "C5"
    assert len(labels) == 25


def test_labels_are_deterministic_and_unique() -> None:
    assert seat_labels(100) == seat_labels(100)
    assert len(set(seat_labels(100))) == 100


def test_zero_seats_has_no_labels() -> None:
    assert seat_labels(0) == []


def test_rows_past_z_use_two_letters() -> None:
    labels = seat_labels(280)
    assert labels[259] == "Z10"
    assert labels[260] == "AA1"
    assert labels[-1] == "AB10"


def test_custom_row_width() -> None:
    assert seat_labels(5, seats_per_row=2) == ["A1", "A2", "B1", "B2", "C1"]


def test_valid_request_passes_through() -> None:
    assert validate_seat_request(["A1", "B3"], 20) == ["A1", "B3"]


@pytest.mark.parametrize(  # type: ignore[misc]
    "seats,message",
    [
        ([], "No seats selected"),
        (["A1", "A1"], "Duplicate seats in request: A1"),
        (["K1"], "Unknown seats for this event: K1"),
    ],
)
def test_invalid_requests_are_rejected(seats: list, message: str) -> None:
    with pytest.raises(ValidationError) as exc_info:
        validate_seat_request(seats, 100)
    assert exc_info.value.message == message


def test_request_over_limit_is_rejected() -> None:
    seats = [f"A{i}" for i in range(1, 6)]
    with pytest.raises(ValidationError):
        validate_seat_request(seats, 100, max_seats=4)
