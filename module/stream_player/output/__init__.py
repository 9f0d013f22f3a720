# Output module
from .base import AudioOutput, OutputEvent, OutputListener
from .ffplay import FFplayOutput, PlaybackClock

__all__ = ["AudioOutput", "OutputEvent", "OutputListener", "FFplayOutput", "PlaybackClock"]
