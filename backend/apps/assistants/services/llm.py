from __future__ import annotations

import base64
import html
import json
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from django.conf import settings
from django.utils.html import strip_tags
from openai import OpenAI

from apps.stories.services.catalog import titles_for_genres

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt fragments
# ---------------------------------------------------------------------------

_CONTINUATION_SCHEMA = """{
  "continuation": "<the next paragraph of the story; do not repeat the given text>"
}"""

_RECOMMENDATION_SCHEMA = """{
  "recommendations": ["<book title>"]
}"""

_JSON_RULE = (
    "OUTPUT RULE: Return a single valid JSON object, no markdown fences, "
    "no prose before or after, no trailing commas, no comments."
)

_BLOCK_BREAK_PATTERN = re.compile(r"(?i)<\s*(?:br\s*/?|/p|/h[1-6]|/li|/blockquote|/div)\s*>")
_SENTENCE_SPLIT_PATTERN = re.compile(r"(?<=[.!?])\s+")
_LIST_MARKER_PATTERN = re.compile(r"^\s*(?:\d+\s*[.):-]\s*|[-*•]\s+)")


class GenerativeService:
    """
    OpenAI adapter for the writer and reader helpers.

    Each public method returns a dict carrying ``used_fallback`` and
    ``fallback_stage`` so callers can tell a generated result from the
    deterministic substitute used when the API is unavailable or fails.
    Invalid input raises ``ValueError`` before any API call is made.
    """

    def __init__(self) -> None:
        self.model = settings.OPENAI_MODEL
        self.image_model = getattr(settings, "OPENAI_IMAGE_MODEL", "gpt-image-1")
        self.tts_model = getattr(settings, "OPENAI_TTS_MODEL", "gpt-4o-mini-tts")
        self.tts_voice = getattr(settings, "OPENAI_TTS_VOICE", "alloy")
        self.tts_max_chars = max(1, int(getattr(settings, "BOOKHATCH_TTS_MAX_CHARS", 3500)))
        self.recommendation_count = max(1, int(getattr(settings, "BOOKHATCH_RECOMMENDATION_COUNT", 5)))
        self.max_retries = settings.BOOKHATCH_JSON_RETRIES
        self._client: Optional[OpenAI] = None
        if getattr(settings, "OPENAI_API_KEY", ""):
            try:
                self._client = OpenAI(api_key=settings.OPENAI_API_KEY)
            except Exception:
                logger.warning("Failed to initialise OpenAI client", exc_info=True)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def continue_story(self, existing_text: str) -> Dict[str, Any]:
        """Suggest the next paragraph for the text written so far."""
        text = html_to_text(existing_text)
        if not text:
            raise ValueError("existing_text is required")

        system_prompt = _build_system_prompt(
            role="You are a creative co-author for serialized fiction.",
            task=(
                "Continue the story with exactly one new paragraph. Match the voice, tense and "
                "point of view of the given text. Do not repeat or summarize what is already written."
            ),
            schema=_CONTINUATION_SCHEMA,
        )
        payload = self._call_json(system_prompt, f"Story so far:\n{text[-8000:]}")
        continuation = str((payload or {}).get("continuation", "")).strip()
        if continuation:
            return self._with_runtime_meta({"continuation": continuation}, used_fallback=False)
        return self._with_runtime_meta(
            {"continuation": "", "error": "Could not generate a continuation right now."},
            used_fallback=True,
            fallback_stage="continue_story",
        )

    def recommend_books(self, preferred_genres: List[str]) -> Dict[str, Any]:
        """Recommend book titles for a reader's favorite genres."""
        genres = _clean_list(preferred_genres)
        if not genres:
            raise ValueError("At least one preferred genre is required")

        system_prompt = _build_system_prompt(
            role="You are a well-read librarian recommending fiction.",
            task=(
                f"Recommend {self.recommendation_count} books for a reader who enjoys the listed genres. "
                "Return titles only, without authors, numbering or commentary."
            ),
            schema=_RECOMMENDATION_SCHEMA,
        )
        payload = self._call_json(system_prompt, f"Preferred genres: {', '.join(genres)}")
        raw = (payload or {}).get("recommendations", [])
        titles = clean_titles(raw if isinstance(raw, list) else [])[: self.recommendation_count]
        if titles:
            return self._with_runtime_meta({"recommendations": titles}, used_fallback=False)
        return self._with_runtime_meta(
            {"recommendations": titles_for_genres(genres, limit=self.recommendation_count)},
            used_fallback=True,
            fallback_stage="recommendations",
        )

    def generate_cover_image(self, title: str, genre: str, summary: str = "") -> Dict[str, Any]:
        """Generate a portrait book cover, returned as a data URI."""
        title = str(title or "").strip()
        genre = str(genre or "").strip()
        if not title:
            raise ValueError("title is required")

        if self._client:
            prompt = (
                f"A book cover for a {genre or 'fiction'} story titled \"{title}\". "
                f"{str(summary or '').strip()[:600]} "
                "Striking, professional illustration in portrait orientation. No text or lettering."
            )
            try:
                response = self._client.images.generate(
                    model=self.image_model,
                    prompt=prompt,
                    size="1024x1536",
                    n=1,
                )
                image = response.data[0]
                b64 = getattr(image, "b64_json", None)
                if isinstance(b64, str) and b64.strip():
                    return self._with_runtime_meta(
                        {"image_url": f"data:image/png;base64,{b64.strip()}"},
                        used_fallback=False,
                    )
                url = getattr(image, "url", None)
                if isinstance(url, str) and url.strip():
                    return self._with_runtime_meta({"image_url": url.strip()}, used_fallback=False)
                logger.warning("Image response carried no image data")
            except Exception:
                logger.warning("Cover image generation failed", exc_info=True)

        return self._with_runtime_meta(
            {"image_url": placeholder_cover_url(title, genre)},
            used_fallback=True,
            fallback_stage="cover_image",
        )

    def narrate(self, content: str) -> Dict[str, Any]:
        """Synthesize chapter content to a single MP3 data URI."""
        text = html_to_text(content)
        if not text:
            raise ValueError("There is no text to narrate")
        chunks = split_text_for_tts(text, self.tts_max_chars)

        if self._client:
            try:
                audio = bytearray()
                for chunk in chunks:
                    response = self._client.audio.speech.create(
                        model=self.tts_model,
                        voice=self.tts_voice,
                        input=chunk,
                        response_format="mp3",
                    )
                    audio.extend(response.content)
                if audio:
                    encoded = base64.b64encode(bytes(audio)).decode("utf-8")
                    return self._with_runtime_meta(
                        {"audio_data_uri": f"data:audio/mpeg;base64,{encoded}", "chunks": len(chunks)},
                        used_fallback=False,
                    )
            except Exception:
                logger.warning("Speech synthesis failed", exc_info=True)

        return self._with_runtime_meta(
            {"audio_data_uri": "", "chunks": len(chunks), "error": "Narration is unavailable right now."},
            used_fallback=True,
            fallback_stage="narration",
        )

    # ------------------------------------------------------------------
    # Private, API layer
    # ------------------------------------------------------------------

    def _call_json(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.8,
    ) -> Optional[Dict[str, Any]]:
        if not self._client:
            return None

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        for attempt in range(self.max_retries + 1):
            try:
                response = self._client.chat.completions.create(
                    model=self.model,
                    temperature=temperature,
                    response_format={"type": "json_object"},
                    messages=messages,
                )
                content = response.choices[0].message.content or "{}"
                payload = json.loads(content)
                if isinstance(payload, dict):
                    return payload
            except Exception:
                logger.warning("LLM JSON call failed (attempt %d)", attempt + 1, exc_info=True)

            messages.append({
                "role": "user",
                "content": (
                    "Your previous response was not valid JSON. "
                    "Return only the corrected JSON object."
                ),
            })
        return None

    def _with_runtime_meta(
        self,
        payload: Dict[str, Any] | Any,
        *,
        used_fallback: bool,
        fallback_stage: str = "",
    ) -> Dict[str, Any]:
        out = dict(payload) if isinstance(payload, dict) else {}
        out["used_fallback"] = bool(used_fallback)
        out["fallback_stage"] = str(fallback_stage).strip() if used_fallback else ""
        return out


# ---------------------------------------------------------------------------
# Text utilities
# ---------------------------------------------------------------------------

def _build_system_prompt(role: str, task: str, schema: str) -> str:
    return "\n\n".join([
        f"ROLE: {role}",
        f"TASK: {task}",
        f"OUTPUT SCHEMA:\n{schema}",
        _JSON_RULE,
    ])


def _clean_list(values: Any) -> List[str]:
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple)):
        return []
    out: List[str] = []
    for value in values:
        text = str(value or "").strip()
        if text and text not in out:
            out.append(text)
    return out


def clean_titles(values: List[Any]) -> List[str]:
    """Strip list numbering, bullets and quotes; drop blanks and repeats."""
    titles: List[str] = []
    seen = set()
    for value in values:
        text = _LIST_MARKER_PATTERN.sub("", str(value or "")).strip().strip("\"'").strip()
        key = text.casefold()
        if text and key not in seen:
            seen.add(key)
            titles.append(text)
    return titles


def placeholder_cover_url(title: str, genre: str) -> str:
    seed = quote(f"{title}-{genre}", safe="")
    return f"https://picsum.photos/seed/{seed}/400/600"


def html_to_text(content: str) -> str:
    """Editor HTML to plain text, one paragraph per line."""
    marked = _BLOCK_BREAK_PATTERN.sub("\n", str(content or ""))
    text = html.unescape(strip_tags(marked)).replace("\xa0", " ")
    lines = [" ".join(line.split()) for line in text.splitlines()]
    return "\n".join(line for line in lines if line).strip()


def split_text_for_tts(text: str, max_chars: int) -> List[str]:
    cleaned = str(text or "").strip()
    if not cleaned:
        return []
    if len(cleaned) <= max_chars:
        return [cleaned]

    chunks: List[str] = []
    buffer: List[str] = []
    buffer_len = 0
    for paragraph in cleaned.splitlines():
        for sentence in _SENTENCE_SPLIT_PATTERN.split(paragraph.strip()):
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) > max_chars:
                if buffer:
                    chunks.append(" ".join(buffer))
                    buffer, buffer_len = [], 0
                for idx in range(0, len(sentence), max_chars):
                    chunks.append(sentence[idx : idx + max_chars].strip())
                continue
            if buffer and buffer_len + len(sentence) + 1 > max_chars:
                chunks.append(" ".join(buffer))
                buffer, buffer_len = [], 0
            buffer.append(sentence)
            buffer_len += len(sentence) + 1
    if buffer:
        chunks.append(" ".join(buffer))
    return [chunk for chunk in chunks if chunk]
