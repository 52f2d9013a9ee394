"""
In-process channel transport for realtime booking updates.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping

from ..services.realtime import CHANNEL_ERROR, SUBSCRIBED


@dataclass(eq=False)
class MemoryChannel:
    name: str
    event: str
    on_message: Callable[[Mapping[str, Any]], None]


class InMemoryChannelTransport:
    """
    Broadcasts messages to channels held in memory.

    Stands in for the hosted realtime service in tests and in applications
    that publish their own booking updates.
    Channel names listed in ``failing_channels`` report a subscribe error.
    """

    def __init__(self, failing_channels: Iterable[str] = ()):
        self.failing_channels = set(failing_channels)
        self.channels: Dict[str, List[MemoryChannel]] = {}
        self.removed: List[MemoryChannel] = []

    def subscribe(
        self,
        channel_name: str,
        event: str,
        on_message: Callable[[Mapping[str, Any]], None],
        on_status: Callable[[str], None],
    ) -> MemoryChannel:
        channel = MemoryChannel(name=channel_name, event=event, on_message=on_message)

        if channel_name in self.failing_channels:
            on_status(CHANNEL_ERROR)
            return channel

        self.channels.setdefault(channel_name, []).append(channel)
        on_status(SUBSCRIBED)
        return channel

    def remove_channel(self, channel: MemoryChannel) -> None:
        listeners = self.channels.get(channel.name, [])
        if channel in listeners:
            listeners.remove(channel)
            if not listeners:
                del self.channels[channel.name]
        self.removed.append(channel)

    def publish(self, channel_name: str, event: str, payload: Mapping[str, Any]) -> int:
        """Deliver a payload to every listener of a channel; returns the count."""
        delivered = 0
        for channel in list(self.channels.get(channel_name, [])):
            if channel.event == event:
                channel.on_message(payload)
                delivered += 1
        return delivered
