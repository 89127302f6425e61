"""Speech-to-text through a hosted Whisper endpoint on RunPod."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import httpx

from mindsy.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Field names RunPod workers have been seen to put the transcript under
TRANSCRIPT_FIELDS = ("transcript", "transcription", "text", "content", "speech", "audio_text")


class TranscriptExtractionError(ValueError):
    """Raised when a RunPod response carries no usable transcript."""


@dataclass
class Transcript:
    """Text recognized from a recording."""

    text: str
    detected_language: Optional[str] = None
    language_probability: Optional[float] = None


@dataclass
class TranscriptionResult:
    """Outcome of one transcription call."""

    success: bool
    data: Optional[Transcript] = None
    error: Optional[str] = None
    error_code: Optional[str] = None


def _find_text(output: dict) -> Optional[str]:
    if isinstance(output.get("text"), str):
        return output["text"]
    if isinstance(output.get("transcription"), str):
        return output["transcription"]
    result = output.get("result")
    if isinstance(result, dict) and isinstance(result.get("transcription"), str):
        return result["transcription"]

    for field in TRANSCRIPT_FIELDS:
        if isinstance(output.get(field), str):
            return output[field]

    for value in output.values():
        if isinstance(value, dict):
            for field in TRANSCRIPT_FIELDS:
                if isinstance(value.get(field), str):
                    return value[field]
    return None


def extract_transcript(payload: dict[str, Any]) -> Transcript:
    """Pull the transcript out of a ``/runsync`` response body.

    Raises:
        TranscriptExtractionError: job still running, no output, or no text field.
    """
    status = payload.get("status")
    output = payload.get("output")

    if status == "IN_PROGRESS":
        raise TranscriptExtractionError("Transcription is still in progress")
    if status == "COMPLETED" and not output:
        raise TranscriptExtractionError("Transcription completed without output")
    if not isinstance(output, dict):
        raise TranscriptExtractionError("Invalid response format from RunPod API")

    text = _find_text(output)
    if text is None:
        raise TranscriptExtractionError(
            f"No transcript found in RunPod output (keys: {', '.join(output.keys())})"
        )

    return Transcript(
        text=text,
        detected_language=output.get("language"),
        language_probability=output.get("language_probability"),
    )


class TranscriptionClient:
    """Thin wrapper around the RunPod ``/runsync`` endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: float = 600.0,
    ):
        self.base_url = (base_url or settings.runpod_base_url).rstrip("/")
        self.api_key = api_key or settings.runpod_api_key
        self.timeout = timeout

    async def transcribe(self, audio_url: str) -> TranscriptionResult:
        """Transcribe the audio behind a (signed) URL. Never raises."""
        if not audio_url:
            return TranscriptionResult(
                success=False, error="Audio URL is required", error_code="INVALID_INPUT"
            )
        if not self.api_key:
            return TranscriptionResult(
                success=False,
                error="RunPod API key is not configured",
                error_code="AUTHENTICATION_ERROR",
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/runsync",
                    json={"input": {"audio": audio_url}},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"RunPod HTTP error: {e.response.status_code}")
            return TranscriptionResult(
                success=False,
                error=f"RunPod API error: {e.response.status_code} {e.response.reason_phrase}",
                error_code="API_ERROR",
            )
        except httpx.TimeoutException as e:
            logger.error(f"RunPod request timed out: {e}")
            return TranscriptionResult(
                success=False, error="RunPod request timed out", error_code="TIMEOUT_ERROR"
            )
        except httpx.RequestError as e:
            logger.error(f"RunPod request error: {e}")
            return TranscriptionResult(success=False, error=str(e), error_code="NETWORK_ERROR")
        except ValueError as e:
            logger.error(f"RunPod returned invalid JSON: {e}")
            return TranscriptionResult(
                success=False, error="Invalid response format from RunPod API", error_code="API_ERROR"
            )

        try:
            transcript = extract_transcript(payload)
        except TranscriptExtractionError as e:
            logger.error(f"RunPod transcript extraction failed: {e}")
            return TranscriptionResult(success=False, error=str(e), error_code="EXTRACTION_ERROR")

        logger.info(
            f"Transcribed {len(transcript.text.split())} words "
            f"(language={transcript.detected_language})"
        )
        return TranscriptionResult(success=True, data=transcript)
