"""Huddle: ephemeral code-addressed chat sessions over WebSocket."""
