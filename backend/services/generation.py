"""
Patch generation.

Streams a generation (Anthropic or golden-file mock) into a PatchStream
and reports progress as notices:

    generation.start    {generation_id, intent}
    generation.preview  {generation_id, markup}      tolerant, per chunk
    generation.done     {generation_id, patch}       strict parse succeeded
    generation.failed   {generation_id, error, raw, failures, retry}

A finished patch is parked on the session (pending_patch). It is only
applied when the client asks for it (generation.apply), so a preview is
never committed by accident. A cancelled generation discards its buffer.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from typing import Any

import anthropic

from backend.config import settings
from backend.services.anthropic_client import AnthropicClient
from backend.services.prompt_builder import build_messages, build_system_blocks
from engine.kernel.classifier import detect_prompt_intent
from engine.kernel.mock_generator import MockGenerator
from engine.kernel.patch import PatchParseError, PatchStream
from engine.kernel.session import EditorSession

logger = logging.getLogger(__name__)

GenerationSource = Callable[[EditorSession, str], AsyncIterator[str]]

PARSE_FAILURE = "parse"
SOURCE_FAILURE = "source"


class FailureTracker:
    """
    Counts consecutive failures of the same kind.

    The second failure in a row offers the user a retry; a success or a
    failure of another kind starts over.
    """

    def __init__(self) -> None:
        self.kind: str | None = None
        self.count = 0

    def record(self, kind: str) -> int:
        if kind != self.kind:
            self.kind = kind
            self.count = 0
        self.count += 1
        return self.count

    def reset(self) -> None:
        self.kind = None
        self.count = 0

    @property
    def should_offer_retry(self) -> bool:
        return self.count >= 2


# ---------------------------------------------------------------------------
# Sources
# ---------------------------------------------------------------------------


def pick_scenario(prompt: str) -> str:
    """
    Choose a golden file scenario based on the prompt.

    Simple keyword matching against available scenarios.
    """
    prompt_lower = prompt.lower()
    if detect_prompt_intent(prompt)["wants_header"]:
        return "header_page"
    if any(kw in prompt_lower for kw in ("start over", "new page", "replace the page", "landing page")):
        return "replace_page"
    if any(kw in prompt_lower for kw in ("hero", "headline")):
        return "modify_hero"
    if "pricing" in prompt_lower:
        return "add_section"
    return settings.MOCK_SCENARIO


def mock_source(generator: MockGenerator | None = None, profile: str = "instant") -> GenerationSource:
    generator = generator or MockGenerator()

    async def _stream(session: EditorSession, prompt: str) -> AsyncIterator[str]:
        async for chunk in generator.stream(generator.scenario or pick_scenario(prompt), profile=profile):
            yield chunk

    return _stream


def anthropic_source(client: AnthropicClient, conversation: list[dict[str, Any]] | None = None) -> GenerationSource:
    async def _stream(session: EditorSession, prompt: str) -> AsyncIterator[str]:
        async for text in client.stream(
            messages=build_messages(conversation or [], prompt),
            system=build_system_blocks(session),
            model=settings.GENERATION_MODEL,
            max_tokens=settings.GENERATION_MAX_TOKENS,
        ):
            yield text

    return _stream


def default_source() -> GenerationSource:
    if settings.use_mock_generator:
        return mock_source(MockGenerator())
    return anthropic_source(AnthropicClient(api_key=settings.ANTHROPIC_API_KEY))


# ---------------------------------------------------------------------------
# Generation
# ---------------------------------------------------------------------------


class PatchGeneration:
    """One generation turn for a session."""

    def __init__(self, source: GenerationSource, tracker: FailureTracker | None = None):
        self.source = source
        self.tracker = tracker or FailureTracker()
        self.stream = PatchStream()

    async def run(
        self,
        session: EditorSession,
        prompt: str,
        generation_id: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        generation_id = generation_id or f"gen_{uuid.uuid4().hex[:8]}"
        self.stream = PatchStream()
        session.pending_patch = None

        yield {"type": "generation.start", "generation_id": generation_id, "intent": detect_prompt_intent(prompt)}

        last_preview: str | None = None
        try:
            async for chunk in self.source(session, prompt):
                preview = self.stream.feed(chunk)
                if preview and preview != last_preview:
                    last_preview = preview
                    yield {"type": "generation.preview", "generation_id": generation_id, "markup": preview}
        except asyncio.CancelledError:
            logger.info("generation %s cancelled, discarding %d chars", generation_id, len(self.stream.buffer))
            self.stream.discard()
            raise
        except (anthropic.APIError, OSError, ValueError) as e:
            logger.error("generation %s: source failed: %s", generation_id, e)
            yield self._failed(generation_id, SOURCE_FAILURE, str(e))
            return

        try:
            patch = self.stream.finish()
        except PatchParseError as e:
            logger.warning("generation %s: unparseable output: %s", generation_id, e)
            yield self._failed(generation_id, PARSE_FAILURE, str(e), raw=e.raw)
            return

        self.tracker.reset()
        session.pending_patch = patch
        logger.info("generation %s done: operation=%s", generation_id, patch.operation)
        yield {"type": "generation.done", "generation_id": generation_id, "patch": patch.to_dict()}

    def _failed(self, generation_id: str, kind: str, error: str, raw: str = "") -> dict[str, Any]:
        failures = self.tracker.record(kind)
        return {
            "type": "generation.failed",
            "generation_id": generation_id,
            "kind": kind,
            "error": error,
            "raw": raw,
            "failures": failures,
            "retry": self.tracker.should_offer_retry,
        }
