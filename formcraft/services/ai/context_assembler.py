"""Builds the bounded memory context block from retrieved forms."""

import json
from typing import Any, Dict, List, Sequence

from loguru import logger

from formcraft.services.memory.types import FormRecord

MAX_TITLE_CHARS = 100
MAX_DESCRIPTION_CHARS = 200
MAX_FIELD_LABELS = 8
# Limit of one serialized summary
MAX_SUMMARY_CHARS = 800
# Limit of the whole context block
MAX_CONTEXT_CHARS = 4000


class ContextAssembler:
    """
    Turns ranked form records into a size-bounded text block.

    Each record is summarized and capped at MAX_SUMMARY_CHARS; summaries are
    appended in rank order until the next one would push the block past
    MAX_CONTEXT_CHARS. That summary and everything after it is dropped.
    """

    def __init__(
        self,
        max_summary_chars: int = MAX_SUMMARY_CHARS,
        max_context_chars: int = MAX_CONTEXT_CHARS,
    ):
        self.max_summary_chars = max_summary_chars
        self.max_context_chars = max_context_chars

    def summarize(self, record: FormRecord) -> Dict[str, Any]:
        return {
            "purpose": (record.title or "")[:MAX_TITLE_CHARS],
            "description": (record.description or "")[:MAX_DESCRIPTION_CHARS],
            "fields": record.field_labels[:MAX_FIELD_LABELS],
        }

    def serialize(self, record: FormRecord) -> str:
        """Serialized summary of one record, cut to the per-item limit."""
        text = json.dumps(self.summarize(record), ensure_ascii=False)
        return text[: self.max_summary_chars]

    def build_context(self, records: Sequence[FormRecord]) -> str:
        """
        Build the context block.

        :param records: Records in ranked order
        :return: Context text, empty when nothing was retrieved or fits
        """
        blocks: List[str] = []
        total = 0
        for position, record in enumerate(records, start=1):
            block = f"[Form {position}] {self.serialize(record)}\n"
            if total + len(block) > self.max_context_chars:
                logger.debug(
                    f"Context limit reached, keeping {len(blocks)} of {len(records)} forms"
                )
                break
            blocks.append(block)
            total += len(block)

        return "".join(blocks)
