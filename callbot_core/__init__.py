"""
Calling Bot Core
================

Command routing and call orchestration for a meeting assistant bot.

This package provides:
- Command classification for message and invoke turns
- Layered conversation context composed into completion prompts
- A completion client with blocking and streamed responses
- Call, meeting and incident orchestration over the Graph API
"""

__version__ = "1.0.0"
