"""
ReplyDesk: an AI messaging assistant for small businesses.

The service drafts replies to inbound customer messages with Google Gemini, helps the
operator offer appointment slots, keeps canned replies and a usage report, and runs
text and live voice conversations with the assistant.
"""
