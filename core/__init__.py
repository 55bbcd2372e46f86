"""
Core logic of the language tutor.

Includes:
- api: upstream chat-completion client used by the relay
- relay: client side of POST /api/chat
- speech: speech synthesis / recognition adapter
- session: the conversation state machine and its view interface
"""
