"""Fixed-width slot grid derived from a court's operating hours."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta


def build_slot_grid(*, opening_time: time, closing_time: time, slot_duration_minutes: int) -> list[tuple[time, time]]:
    """Return ``[start, end)`` slots from opening time, dropping a trailing partial slot."""
    if slot_duration_minutes <= 0:
        raise ValueError(f"slot_duration_minutes must be positive, got {slot_duration_minutes}")

    # Anchor on a fixed day so a slot running past midnight compares greater than closing.
    anchor = date(2000, 1, 1)
    cursor = datetime.combine(anchor, opening_time)
    closing = datetime.combine(anchor, closing_time)
    slot_delta = timedelta(minutes=slot_duration_minutes)

    slots: list[tuple[time, time]] = []
    while cursor + slot_delta <= closing:
        next_cursor = cursor + slot_delta
        slots.append((cursor.time(), next_cursor.time()))
        cursor = next_cursor
    return slots
