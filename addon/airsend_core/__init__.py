"""AirSend reception add-on core.

Bridges AirSend radio devices and Home Assistant: arms devices for event
reception and translates their radio events into entity states.
"""

__version__ = "2.0.0"

__all__ = ["__version__"]
