"""Centralized constants for caption generation and the regeneration cycle.

This module provides a single source of truth for prompt text and default
policy values shared by the settings, the generator and the controller.
"""

# =============================================================================
# CAPTION GENERATION
# =============================================================================

DEFAULT_CAPTION_MODEL = "gpt-4-turbo-2024-04-09"

DEFAULT_CAPTION_PERSONA = "You are a movie/series data provider website."

# Placeholders: caption, title, language, quality, format, codec, file_type, size_mb
DEFAULT_CAPTION_PROMPT_TEMPLATE = """{caption}

Create a visually appealing video caption using the following format:
- Only the movie/series name, no extra words or symbols, in bold.
{title}
━━━━━━━━━━━━━━━━━━━━━━━━━━
 Language: {language} | Quality: {quality} | Format: {format} | Codec: {codec} | Size: {size_mb} MB | File Type: {file_type}
━━━━━━━━━━━━━━━━━━━━━━━━━━

This caption is for a Telegram bot, do not use * stars.
Use proper spacing, fancy icons, and a clean, visually appealing design. Do not add any extra words or unnecessary details."""

# Shown in the prompt when a structured field is missing
UNKNOWN_FIELD_VALUE = "N/A"

BYTES_PER_MB = 1024 * 1024

# =============================================================================
# SCHEDULING
# =============================================================================

REGENERATION_JOB_ID = "caption_regeneration"
