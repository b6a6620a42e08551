"""Transport SPI and implementations."""

from .base import Record, StreamSink, StreamSource
from .kafka import KafkaSettings, KafkaSink, KafkaSource
from .memory import MemorySink, MemorySource

__all__ = [
    "KafkaSettings",
    "KafkaSink",
    "KafkaSource",
    "MemorySink",
    "MemorySource",
    "Record",
    "StreamSink",
    "StreamSource",
]
