"""Seat label synthesis: rows of ten, lettered from 'A'."""

import string
from typing import Iterable, List, Sequence

from ..core.config import settings
from ..core.errors import ValidationError

ROW_LETTERS = string.ascii_uppercase


def seat_labels(total_seats: int, seats_per_row: int = 0) -> List[str]:
    """
    Deterministic labels for an event: A1..A10, B1..B10, ... truncated to
    ``total_seats``. Rows beyond 'Z' continue with 'AA', 'AB', ...
    """
    per_row = seats_per_row or settings.booking.SEATS_PER_ROW
    labels: List[str] = []
    row = 0
    while len(labels) < total_seats:
        letter = _row_letter(row)
        for seat in range(1, per_row + 1):
            if len(labels) >= total_seats:
                break
            labels.append(f"{letter}{seat}")
        row += 1
    return labels


def _row_letter(row: int) -> str:
    letters = ""
    row += 1
    while row > 0:
        row, rem = divmod(row - 1, len(ROW_LETTERS))
        letters = ROW_LETTERS[rem] + letters
    return letters


def validate_seat_request(
    seat_numbers: Sequence[str], total_seats: int, max_seats: int = 0
) -> List[str]:
    """Check a requested seat list against the event's layout."""
    if not seat_numbers:
        raise ValidationError("No seats selected")

    limit = max_seats or settings.booking.MAX_SEATS_PER_BOOKING
    if len(seat_numbers) > limit:
        raise ValidationError(f"Cannot book more than {limit} seats at once")

    duplicates = _duplicates(seat_numbers)
    if duplicates:
        raise ValidationError(f"Duplicate seats in request: {', '.join(duplicates)}")

    valid = set(seat_labels(total_seats))
    unknown = [s for s in seat_numbers if s not in valid]
    if unknown:
        raise ValidationError(f"Unknown seats for this event: {', '.join(unknown)}")

    return list(seat_numbers)


def _duplicates(items: Iterable[str]) -> List[str]:
    seen: set[str] = set()
    dupes: List[str] = []
    for item in items:
        if item in seen and item not in dupes:
            dupes.append(item)
        seen.add(item)
    return dupes
