# Prompt templates used by the tutor relay.


PROMPT_TUTOR_SYSTEM = (
    "You are a helpful language tutor. The student's native language is "
    "{native_language} and they are learning {target_language} at a "
    "{difficulty} level. Keep responses appropriate for their level."
)


PROMPT_GREETING = "Hello! I am ready to help you learn {target_language_name}"
