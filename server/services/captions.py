"""Caption generation for catalog records.

Builds a deterministic prompt from a record, calls the text-generation
boundary once and normalizes the reply. Every failure is reported as
``None``; nothing is raised to the caller and nothing is retried here.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from constants import BYTES_PER_MB, UNKNOWN_FIELD_VALUE
from core.logging import get_logger, log_execution_time
from models.record import Record
from services.regeneration.models import RegenerationOptions

logger = get_logger(__name__)

# (model, system_prompt, prompt) -> raw reply content
CompletionFn = Callable[[str, str, str], Awaitable[Any]]


class _PromptFields(dict):
    """Template mapping that renders unknown placeholders as N/A."""

    def __missing__(self, key):
        return UNKNOWN_FIELD_VALUE


def format_size_mb(size_bytes: Optional[int]) -> str:
    """Bytes rendered as megabytes with two decimals."""
    return f"{(size_bytes or 0) / BYTES_PER_MB:.2f}"


def normalize_caption(content: Any) -> Optional[str]:
    """Trimmed caption text, or None for non-text or blank replies."""
    if not isinstance(content, str):
        return None
    caption = content.strip()
    return caption or None


class CaptionGenerator:
    """Produces a new caption for one record via the external service."""

    def __init__(self, complete: CompletionFn, options: RegenerationOptions):
        self._complete = complete
        self.options = options

    def build_prompt(self, record: Record) -> str:
        fields: Dict[str, str] = _PromptFields(
            caption=record.caption or "",
            title=record.title or UNKNOWN_FIELD_VALUE,
            language=record.language or UNKNOWN_FIELD_VALUE,
            quality=record.quality or UNKNOWN_FIELD_VALUE,
            format=record.format or UNKNOWN_FIELD_VALUE,
            codec=record.codec or UNKNOWN_FIELD_VALUE,
            file_type=record.file_type or UNKNOWN_FIELD_VALUE,
            size_mb=format_size_mb(record.size),
        )
        return self.options.prompt_template.format_map(fields)

    async def generate(self, record: Record) -> Optional[str]:
        """New caption text for ``record``, or None on any failure."""
        start_time = time.time()
        try:
            prompt = self.build_prompt(record)
            content = await asyncio.wait_for(
                self._complete(self.options.model, self.options.persona, prompt),
                timeout=self.options.generation_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Caption generation timed out", record_id=record.id,
                           timeout=self.options.generation_timeout)
            return None
        except Exception as e:
            logger.error("Caption generation failed", record_id=record.id,
                         error_type=type(e).__name__, error=str(e))
            return None

        caption = normalize_caption(content)
        if caption is None:
            logger.warning("No valid caption generated", record_id=record.id,
                           content_type=type(content).__name__)
            return None

        log_execution_time(logger, "generate_caption", start_time, time.time(),
                           record_id=record.id, caption_length=len(caption))
        return caption
