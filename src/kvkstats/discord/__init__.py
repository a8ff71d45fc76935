"""Discord bot integration for the KvK stats tracker.

The bot runs in-process with FastAPI, sharing the same event loop.
Every slash command forwards a command envelope to the Apps Script
backend and renders the JSON result as an embed or file attachment.
"""
