"""Player provider adapters.

Adapters translate native player events into canonical events. Unknown
events and malformed payloads translate to nothing.
"""

from collections.abc import Mapping
from typing import Any

import orjson
import structlog

from .events import (
    EndedEvent,
    MetadataEvent,
    PauseEvent,
    PlayerEvent,
    PlayEvent,
    TimeUpdateEvent,
)


logger = structlog.get_logger(__name__)


def _positive(value: Any) -> float | None:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class PlayerAdapter:
    """Base adapter: ``translate(name, payload)`` -> canonical events."""

    provider = "base"

    def translate(self, name: str, payload: Any = None) -> list[PlayerEvent]:
        raise NotImplementedError


class PlayerJsAdapter(PlayerAdapter):
    """Player.js events as emitted by the Bunny Stream embed.

    ``ready`` carries the duration returned by ``getDuration``; ``timeupdate``
    carries a JSON string ``{"seconds": ..., "duration": ...}``.
    """

    provider = "playerjs"

    def translate(self, name: str, payload: Any = None) -> list[PlayerEvent]:
        if name == "ready":
            duration = _positive(payload)
            return [MetadataEvent(duration)] if duration else []
        if name == "play":
            return [PlayEvent()]
        if name == "pause":
            return [PauseEvent()]
        if name == "ended":
            return [EndedEvent()]
        if name == "timeupdate":
            return self._timeupdate(payload)
        return []

    def _timeupdate(self, payload: Any) -> list[PlayerEvent]:
        data = payload
        if isinstance(payload, str | bytes):
            try:
                data = orjson.loads(payload)
            except orjson.JSONDecodeError:
                logger.debug("player_timeupdate_unparseable", payload=str(payload))
                return []
        if not isinstance(data, Mapping) or data.get("seconds") is None:
            return []

        try:
            position = max(0.0, float(data["seconds"]))
        except (TypeError, ValueError):
            return []
        return [TimeUpdateEvent(position, _positive(data.get("duration")))]


class PostMessageAdapter(PlayerAdapter):
    """``window.postMessage`` events from a generic embed.

    The payload is the message object itself; ``event`` names the event and
    both the ``video-`` prefixed and the bare media event names are accepted.
    """

    provider = "postmessage"

    ALIASES = {
        "video-metadata": "metadata",
        "loadedmetadata": "metadata",
        "video-play": "play",
        "play": "play",
        "video-pause": "pause",
        "pause": "pause",
        "video-ended": "ended",
        "ended": "ended",
        "video-timeupdate": "timeupdate",
        "timeupdate": "timeupdate",
    }

    def translate(self, name: str, payload: Any = None) -> list[PlayerEvent]:
        data = payload if isinstance(payload, Mapping) else {}
        canonical = self.ALIASES.get(name)

        if canonical == "metadata":
            duration = _positive(data.get("duration"))
            return [MetadataEvent(duration)] if duration else []
        if canonical == "play":
            return [PlayEvent()]
        if canonical == "pause":
            return [PauseEvent()]
        if canonical == "ended":
            return [EndedEvent()]
        if canonical == "timeupdate":
            if data.get("currentTime") is None:
                return []
            try:
                position = max(0.0, float(data["currentTime"]))
            except (TypeError, ValueError):
                return []
            return [TimeUpdateEvent(position, _positive(data.get("duration")))]
        return []

    def translate_message(self, message: Any) -> list[PlayerEvent]:
        """Translate a raw message object, ignoring anything that is not one."""
        if not isinstance(message, Mapping):
            return []
        return self.translate(str(message.get("event", "")), message)


_ADAPTERS: dict[str, type[PlayerAdapter]] = {
    PlayerJsAdapter.provider: PlayerJsAdapter,
    PostMessageAdapter.provider: PostMessageAdapter,
}


def get_adapter(provider: str) -> PlayerAdapter:
    """Adapter for a provider name (``playerjs`` or ``postmessage``)."""
    try:
        return _ADAPTERS[provider]()
    except KeyError:
        msg = f"Unknown player provider: {provider}"
        raise ValueError(msg) from None
