"""Claude API engine that transcribes receipt images."""

from __future__ import annotations

import base64

from . import OCREngine, RecognitionResult, guess_media_type

_PROMPT = """\
This image is a photo or scan of a shopping receipt.
Transcribe every line of text on it, top to bottom, exactly as printed.

Rules:
- One receipt line per output line; keep prices on the same line as their item.
- Do not summarize, translate, correct, or reorder anything.
- Output plain text only, no commentary and no markdown.
"""


class ClaudeEngine(OCREngine):
    """Recognize receipt text using Claude's vision capability."""

    def __init__(
        self, api_key: str = "", model: str = "claude-sonnet-4-5-20250929"
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = None

    def _get_client(self):
        if self._client is not None:
            return self._client

        if not self._api_key:
            raise ValueError(
                "Anthropic API key is not set. "
                "Check the config file or the ANTHROPIC_API_KEY environment variable."
            )

        try:
            import anthropic
        except ImportError:
            raise ImportError(
                "anthropic SDK is required: pip install 'mykhata[claude]'"
            ) from None

        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)
        return self._client

    async def recognize(self, image_bytes: bytes) -> RecognitionResult:
        client = self._get_client()
        content = [
            {
                "type": "image",
                "source": {
                    "type": "base64",
                    "media_type": guess_media_type(image_bytes),
                    "data": base64.standard_b64encode(image_bytes).decode(),
                },
            },
            {"type": "text", "text": _PROMPT},
        ]

        response = await client.messages.create(
            model=self._model,
            max_tokens=4096,
            messages=[{"role": "user", "content": content}],
        )

        return RecognitionResult(text=_parse_response(response.content[0].text))

    async def terminate(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


def _parse_response(text: str) -> str:
    """Strip markdown fences the model sometimes wraps around the transcript."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    return cleaned
