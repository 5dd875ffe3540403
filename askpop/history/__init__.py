"""
Conversation history and the persistence port used by stream sessions.
"""
