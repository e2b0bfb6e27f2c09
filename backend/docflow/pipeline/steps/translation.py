"""
TranslationStep — detect the source language and translate to the target.

Reads the previous step's artifact when there is one (``last-output``),
otherwise the ingested object itself.  Text already in the target
language is passed through unchanged into ``textpassthrough/``.
"""

from __future__ import annotations

import json

from docflow.capabilities.language import LanguageClient
from docflow.capabilities.translator import TranslatorClient
from docflow.core.constants import META_LAST_OUTPUT, StepName
from docflow.core.logging import get_logger
from docflow.pipeline.envelope import WorkflowEnvelope
from docflow.pipeline.routing import WorkflowConfig
from docflow.pipeline.step import StepResult, WorkflowStep
from docflow.processing.text import chunk_text, drop_first_line
from docflow.storage.blob_store import BlobStore

logger = get_logger(__name__)

OUTPUT_SUFFIX = "_translated.json"


def unwrap_main_content(text: str) -> str:
    """Return ``main_content`` if ``text`` is an output document, else ``text``."""
    stripped = text.lstrip()
    if not stripped.startswith("{"):
        return text
    try:
        document = json.loads(stripped)
    except ValueError:
        return text
    content = document.get("main_content") if isinstance(document, dict) else None
    return content if isinstance(content, str) else text


class TranslationStep(WorkflowStep):
    """Translate document text into the configured target language."""

    name = StepName.TRANSLATION
    description = "Detect language and translate text"

    def __init__(
        self,
        config: WorkflowConfig,
        store: BlobStore,
        language: LanguageClient,
        translator: TranslatorClient,
    ) -> None:
        super().__init__(config, store)
        self.language = language
        self.translator = translator

    async def execute(self, envelope: WorkflowEnvelope) -> StepResult:
        started_at = self._now()

        previous = envelope.metadata.get(META_LAST_OUTPUT)
        source_path = previous or envelope.blob_path
        text = await self.store.read_text(source_path)
        if not previous and self.config.drop_first_line:
            # Ingested text files carry a header line ahead of the body.
            text = drop_first_line(text)
        text = unwrap_main_content(text)

        target = self.config.target_language
        source = await self._source_language(text)

        log = logger.bind(
            reference_id=envelope.reference_id,
            source_path=source_path,
            source_language=source,
            target_language=target,
        )

        if source != target:
            chunks = chunk_text(text, self.config.translator_max_chars)
            log.info("Translating text", chunks=len(chunks), characters=len(text))
            parts = [
                await self.translator.translate(chunk, source, target)
                for chunk in chunks
            ]
            content = "".join(parts)
            folder, processor, translated = "translation", "translation", True
        else:
            log.info("Text already in target language, passing through")
            chunks = [text] if text else []
            content = text
            folder, processor, translated = "textpassthrough", "text passthrough", False

        location = await self.write_output(
            envelope,
            folder=folder,
            suffix=OUTPUT_SUFFIX,
            processor=processor,
            main_content=content,
            message={
                "source_language": source,
                "target_language": target,
                "translated": translated,
                "chunks": len(chunks),
            },
            origin_file=source_path,
        )

        return self._advance(started_at, {
            "output": location,
            "source_language": source,
            "translated": translated,
            "chunks": len(chunks),
        })

    async def _source_language(self, text: str) -> str:
        if self.config.source_language:
            return self.config.source_language
        if not text.strip():
            # Nothing to detect; an empty document passes through.
            return self.config.target_language
        sample = text[: self.config.detection_max_chars]
        return await self.language.detect_language(sample)
