"""Travel journal records and the collaborator interfaces around the workflow.

Archive readers and message senders are collaborators described by protocols
here. The module also turns one step of an exported trip into the journal
message and nearby-step background that a digest run consumes.
"""

import random
from collections.abc import Sequence
from datetime import datetime
from enum import IntEnum
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field

from nostalgia_bot.config import PolarstepsConfig, TelegramConfig, TripConfig

MAX_PHOTO_SIZE = 10 * 1024 * 1024
MAX_VIDEO_SIZE = 50 * 1024 * 1024
NEARBY_WINDOW = 3


class MediaType(IntEnum):
    PHOTO = 0
    VIDEO = 1


class StepMedia(BaseModel):
    path: str
    type: MediaType
    order: int = 0


class StepLocation(BaseModel):
    locality: str = ""
    full_detail: str = ""


class Step(BaseModel):
    """One journal entry (a day/place) of a trip."""

    id: int
    slug: str = ""
    start_time: str = Field(description="ISO 8601 timestamp")
    location: StepLocation = Field(default_factory=StepLocation)
    timezone_id: str = "UTC"
    name: str
    description: str = ""
    weather_condition: str | None = None
    weather_temperature: float | None = None
    media: list[StepMedia] = Field(default_factory=list)


class TripUser(BaseModel):
    username: str


class TripData(BaseModel):
    id: str
    name: str
    slug: str = ""
    user: TripUser
    steps: list[Step] = Field(default_factory=list)


class TripSelection(BaseModel):
    trip: TripConfig
    data: TripData


class MediaPayload(BaseModel):
    """Pre-compressed media ready for upload."""

    kind: MediaType
    filename: str
    content: bytes


class TripArchive(Protocol):
    """Reads trip archives; picks a trip weighted by step count when no selector is given."""

    async def get_trip_data(self, config: PolarstepsConfig, selector: int | None = None) -> TripSelection: ...


class MessageSender(Protocol):
    """Delivers text and media to the messaging platform.

    Implementations enforce ``MAX_PHOTO_SIZE`` and ``MAX_VIDEO_SIZE``.
    """

    async def send_message(self, config: TelegramConfig, text: str) -> None: ...

    async def send_media_group(self, config: TelegramConfig, items: Sequence[MediaPayload]) -> None: ...


def weighted_index(weights: Sequence[float], rng: random.Random | None = None) -> int:
    """Pick an index with probability proportional to its weight."""
    if not weights:
        raise ValueError("weights must not be empty")
    rng = rng or random.Random()
    threshold = rng.random() * sum(weights)
    cumulative = 0.0
    for index, weight in enumerate(weights):
        cumulative += weight
        if threshold < cumulative:
            return index
    return len(weights) - 1


def nearby_steps(steps: Sequence[Step], index: int, window: int = NEARBY_WINDOW) -> list[Step]:
    """Steps around ``index``: up to ``window`` before it, the step itself and ``window - 1`` after."""
    start = max(0, index - window)
    end = min(len(steps), index + window)
    return list(steps[start:end])


def steps_context(steps: Sequence[Step]) -> str:
    """Journal background text handed to the answer task."""
    return "\n\n".join(
        f"Step {number}: {step.name} ({step.start_time})\n{step.description}" for number, step in enumerate(steps, 1)
    )


def _local_date(step: Step) -> str:
    moment = datetime.fromisoformat(step.start_time)
    try:
        moment = moment.astimezone(ZoneInfo(step.timezone_id))
    except (ZoneInfoNotFoundError, ValueError):
        pass
    return f"{moment:%B} {moment.day}, {moment.year}"


def format_step_message(trip: TripConfig, data: TripData, step: Step, first_step: Step) -> str:
    """Journal message for one step: trip title, linked step name, day, place, weather, media and text."""
    album_link = f"https://www.polarsteps.com/{data.user.username}/{data.id}-{data.slug}/"
    elapsed = datetime.fromisoformat(step.start_time) - datetime.fromisoformat(first_step.start_time)
    day_number = int(elapsed.total_seconds() // 86400) + 1

    weather = None
    if step.weather_condition and step.weather_temperature is not None:
        weather = f"🌤 {step.weather_condition.replace('-', ' ')} | {step.weather_temperature:g}°C"

    videos = sum(1 for media in step.media if media.type is MediaType.VIDEO)
    photos = sum(1 for media in step.media if media.type is MediaType.PHOTO)
    media_summary = f"🖼 {photos} photo{'' if photos == 1 else 's'} | 🎥 {videos} video{'' if videos == 1 else 's'}"

    lines = [
        f"🗺️ {data.name}",
        f"📍 [{step.name}]({album_link}{step.id}-{step.slug}{trip.album_secret})",
        " ",
        f"🗓 Day {day_number} - {_local_date(step)}",
        f"🌍 {step.location.locality}, {step.location.full_detail}",
        weather,
        media_summary,
        " ",
        step.description.strip(),
    ]
    return "\n".join(line for line in lines if line)


def digest_inputs(selection: TripSelection, index: int) -> tuple[str, str]:
    """Step message and nearby-steps background for the step at ``index``.

    Raises:
        IndexError: When the trip has no step at ``index``.
    """
    steps = selection.data.steps
    if not 0 <= index < len(steps):
        raise IndexError(f"trip {selection.data.id} has no step {index}")
    message = format_step_message(selection.trip, selection.data, steps[index], steps[0])
    return message, steps_context(nearby_steps(steps, index))
