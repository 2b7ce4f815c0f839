"""
HarmonAI discussion client.

Creates discussion sessions on the backend, streams microphone audio to it
over Socket.IO, collects the live transcript and reacts to sentiment alerts
and wake-word detections pushed by the server.
"""

__version__ = "0.1.0"
