from .interpreter import CommandInterpreter, FALLBACK_REPLY
from .models import SwapAction, SwapIntent

__all__ = [
    "CommandInterpreter",
    "FALLBACK_REPLY",
    "SwapAction",
    "SwapIntent",
]
