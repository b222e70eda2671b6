"""Realtime channel adapter: push (SSE) and polling transports."""
from src.realtime.backoff import Backoff, full_jitter_delay
from src.realtime.channel import ConnectionHandle, RealtimeChannel
from src.realtime.events import SessionUpdate, TypingEvent, decode_event
from src.realtime.polling import PollingChannel
from src.realtime.presence import TypingTracker
from src.realtime.sse import ServerSentEvent, SSEChannel, SSEParser

__all__ = [
    "Backoff", "full_jitter_delay", "ConnectionHandle", "RealtimeChannel", "SessionUpdate", "TypingEvent",
    "decode_event", "PollingChannel", "TypingTracker", "ServerSentEvent", "SSEChannel", "SSEParser",
]
