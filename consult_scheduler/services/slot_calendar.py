"""Working-hours slot calendar.

The clinic works two blocks a day, 08:00-14:00 and 15:00-17:00, in 30-minute
slots. Block ends are exclusive: the last bookable slots are 13:30 and 16:30.
"""

from datetime import datetime, time, timedelta

SLOT_MINUTES = 30

WORKING_BLOCKS: tuple[tuple[time, time], ...] = (
    (time(8, 0), time(14, 0)),
    (time(15, 0), time(17, 0)),
)


def generate_slots() -> list[str]:
    """
    Build the ordered list of bookable time labels for a working day.

    Returns:
        Labels formatted as ``HH:MM``
    """
    labels: list[str] = []
    step = timedelta(minutes=SLOT_MINUTES)
    anchor = datetime(2000, 1, 1)

    for start, end in WORKING_BLOCKS:
        cursor = datetime.combine(anchor, start)
        block_end = datetime.combine(anchor, end)
        while cursor < block_end:
            labels.append(cursor.strftime("%H:%M"))
            cursor += step

    return labels


def to_slot_label(value: time | str) -> str:
    """
    Normalize a stored time to the ``HH:MM`` slot label.

    Accepts ``datetime.time`` values and ``HH:MM`` / ``HH:MM:SS`` strings.

    Raises:
        ValueError: If the string is not a time of day
    """
    if isinstance(value, time):
        return value.strftime("%H:%M")

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Invalid time label: {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    return time(hours, minutes, seconds).strftime("%H:%M")


def parse_slot_label(label: str) -> time:
    """Parse an ``HH:MM`` label into a time of day."""
    return datetime.strptime(to_slot_label(label), "%H:%M").time()


def is_slot_label(label: str) -> bool:
    """Check whether ``label`` is one of the calendar's bookable slots."""
    try:
        return to_slot_label(label) in generate_slots()
    except ValueError:
        return False
