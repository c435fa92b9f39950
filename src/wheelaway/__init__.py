"""wheelaway -- Screen-watching productivity monitor with a physical nudge.

This package periodically captures the user's screen, asks a multimodal
LLM whether the visible activity is productive, and drives an external
serial device (an Arduino spinning a wheel) accordingly. Live state is
exposed to a presentation layer over HTTP.
"""

__version__ = "0.1.0"
