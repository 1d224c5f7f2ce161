"""Prompt text and canned replies."""

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful assistant in an interactive console app. "
    "Keep answers concise unless asked for more."
)

SUMMARY_INSTRUCTION = (
    "Produce a short bulleted summary of the conversation below. Preserve key "
    "facts and user intents. Do not invent facts.\n\n"
)

SUMMARY_PREFIX = "Conversation summary: "
SUMMARY_FALLBACK = "Summary unavailable."
FALLBACK_REPLY = "Sorry, I couldn't generate a response."
