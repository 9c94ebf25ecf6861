"""Generative-text client used for AI status summaries."""
from __future__ import annotations

import logging
from typing import Optional

import requests

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
REQUEST_TIMEOUT = 60

logger = logging.getLogger(__name__)


class SummarizerError(Exception):
    """Base class for summarizer failures."""


class MissingCredential(SummarizerError):
    pass


class RequestFailed(SummarizerError):
    pass


class Summarizer:
    """Turns a prompt into text. Implementations raise SummarizerError subclasses."""

    def summarize(self, prompt: str) -> str:
        raise NotImplementedError


class GeminiSummarizer(Summarizer):
    def __init__(
        self,
        api_key: Optional[str],
        model: str,
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._session = session or requests.Session()
        self._timeout = timeout

    def summarize(self, prompt: str) -> str:
        if not self._api_key:
            raise MissingCredential("Gemini API key is not configured")
        url = GEMINI_ENDPOINT.format(model=self._model)
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        try:
            resp = self._session.post(
                url,
                json=payload,
                headers={"x-goog-api-key": self._api_key},
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except requests.exceptions.Timeout as exc:
            raise RequestFailed("Request timed out") from exc
        except requests.exceptions.RequestException as exc:
            logger.warning("Gemini request failed: %s", exc)
            raise RequestFailed(str(exc)) from exc
        except ValueError as exc:
            raise RequestFailed("Response was not valid JSON") from exc

        text = _extract_text(data)
        if not text:
            raise RequestFailed("Failed to generate report text.")
        return text


def _extract_text(data: dict) -> str:
    candidates = data.get("candidates") or []
    if not candidates:
        return ""
    parts = (candidates[0].get("content") or {}).get("parts") or []
    return "".join(part.get("text", "") for part in parts if isinstance(part, dict))
