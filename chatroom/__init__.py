"""Poll-based multi-user chat room backed by Redis.

Presence (who is in the room) and the message log are plain Python services;
`chatroom.api` is a thin FastAPI layer on top of them.
"""
