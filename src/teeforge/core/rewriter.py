"""Instruction rewriting for conservative image edits.

Before an edit is sent to the default edit model, the caller's instruction is
rewritten by a text model into a minimal, localized edit instruction.  The
rewrite is advisory: the orchestrator catches every failure raised here and
keeps the original text.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from google import genai
from google.genai import types

logger = logging.getLogger(__name__)

SYSTEM_INSTRUCTION = (
    "You are an expert design retoucher. You apply precise, localized edits while "
    "preserving the existing composition, subject, style, palette, and typography."
)

RULES = (
    "\n\nRules:"
    "\n- Make only the minimal change necessary to satisfy the request."
    "\n- Preserve subject, composition, proportions, style, color palette, textures, lighting, "
    "and typography."
    "\n- Do not redesign or recompose the whole image; avoid changing pose, camera, layout, or "
    "background unless explicitly requested."
    "\n- Keep all elements aligned and sized consistently with the current design."
    "\n- Edge-to-edge output with no margins or whitespace."
    "\n- Output should read as the same design, slightly adjusted."
    "\n\nReturn only the optimized prompt, no additional text."
)


class InstructionRewriter(Protocol):
    """Anything that can rewrite an edit instruction."""

    def rewrite(self, instruction: str) -> str: ...


def build_rewrite_request(instruction: str) -> str:
    """Build the user message sent to the text model."""
    return f'Refine this t-shirt design with a conservative, localized edit: "{instruction}"' + RULES


def _extract_text(response: Any) -> str:
    text = getattr(response, "text", None)
    if text:
        return text.strip()

    for candidate in getattr(response, "candidates", None) or []:
        content = getattr(candidate, "content", None)
        for part in getattr(content, "parts", None) or []:
            if getattr(part, "text", None):
                return part.text.strip()
    return ""


class GeminiInstructionRewriter:
    """Rewrite edit instructions with a Google GenAI text model.

    Args:
        api_key: Google GenAI API key.  The client is created lazily, so a
            missing key only fails when a rewrite is attempted.
        model: Text model name
        temperature: Sampling temperature
        client: Pre-built ``genai.Client`` (tests pass a mock)
    """

    def __init__(
        self,
        api_key: str = "",
        *,
        model: str = "gemini-2.0-flash-exp",
        temperature: float = 0.5,
        client: Any = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self._client = client

    def is_configured(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self) -> Any:
        if self._client is None:
            if not self.api_key:
                raise RuntimeError("Gemini AI not initialized: no API key configured")
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def rewrite(self, instruction: str) -> str:
        """Return a conservative rewrite of ``instruction``.

        Raises:
            RuntimeError: If no API key is configured or the model returned no text
        """
        response = self.client.models.generate_content(
            model=self.model,
            contents=build_rewrite_request(instruction),
            config=types.GenerateContentConfig(
                system_instruction=SYSTEM_INSTRUCTION,
                temperature=self.temperature,
            ),
        )
        text = _extract_text(response)
        if not text:
            raise RuntimeError("No prompt generated from Gemini")

        logger.debug(f"Rewrote edit instruction: {instruction!r} -> {text!r}")
        return text
