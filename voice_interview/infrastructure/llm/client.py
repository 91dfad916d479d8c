"""
Vertex AI REST client for interviewer replies and evaluations.
"""
import json
import logging
from typing import Optional, Dict, Any

import requests
import google.auth
import google.auth.transport.requests
from google.oauth2 import service_account

from ...config import VERTEX_LOCATION, MODEL_NAME, LLM_TIMEOUT, MAX_OUTPUT_TOKENS

logger = logging.getLogger("llm_client")

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]


class VertexAPIError(RuntimeError):
    """Raised when the Vertex endpoint answers with an error status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Vertex REST error {status_code}: {body}")
        self.status_code = status_code


class VertexRestClient:
    """REST-based client for Vertex AI Gemini models."""

    def __init__(self,
                 project: str,
                 location: str = VERTEX_LOCATION,
                 model: str = MODEL_NAME,
                 credentials_json: Optional[str] = None,
                 timeout: int = LLM_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.project = project
        self.location = location
        self.model = model
        self.credentials_json = credentials_json
        self.timeout = timeout
        self.endpoint = (
            f"https://{location}-aiplatform.googleapis.com/v1/projects/{project}"
            f"/locations/{location}/publishers/google/models/{model}:generateContent"
        )
        self.http = session or requests.Session()
        self._credentials = None

    def _load_credentials(self):
        if self.credentials_json:
            return service_account.Credentials.from_service_account_file(self.credentials_json, scopes=SCOPES)
        creds, _ = google.auth.default(scopes=SCOPES)
        return creds

    def _access_token(self, force_refresh: bool = False) -> str:
        """Current OAuth token, refreshed when missing or expired."""
        if self._credentials is None:
            self._credentials = self._load_credentials()
        if force_refresh or not self._credentials.valid:
            self._credentials.refresh(google.auth.transport.requests.Request())
        return self._credentials.token

    def _post(self, body: Dict[str, Any]) -> Dict[str, Any]:
        resp = None
        for attempt in range(2):
            headers = {
                "Authorization": f"Bearer {self._access_token(force_refresh=attempt > 0)}",
                "Content-Type": "application/json",
            }
            resp = self.http.post(self.endpoint, headers=headers, json=body, timeout=self.timeout)
            if resp.status_code != 401:
                break
            logger.info("Vertex token rejected, refreshing")

        if resp.status_code >= 400:
            raise VertexAPIError(resp.status_code, resp.text)
        return resp.json()

    def generate_content(self,
                         prompt_text: str,
                         temperature: float = 0.0,
                         max_output_tokens: int = MAX_OUTPUT_TOKENS,
                         response_mime_type: Optional[str] = None) -> str:
        """Send a single-turn prompt and return the text of the first candidate."""
        generation_config: Dict[str, Any] = {
            "temperature": float(temperature),
            "maxOutputTokens": int(max_output_tokens),
        }
        if response_mime_type:
            generation_config["responseMimeType"] = response_mime_type

        body = {
            "contents": [{"role": "user", "parts": [{"text": prompt_text}]}],
            "generationConfig": generation_config,
        }
        return self.extract_text(self._post(body))

    @staticmethod
    def extract_text(resp_json: Dict[str, Any]) -> str:
        """
        Concatenate the text parts of the first candidate.

        Returns an empty string when the model produced no text, for example
        when the answer was blocked.
        """
        candidates = resp_json.get("candidates") or []
        if not candidates:
            feedback = resp_json.get("promptFeedback")
            if feedback:
                logger.warning("Vertex returned no candidates: %s", feedback)
            return ""

        parts = (candidates[0].get("content") or {}).get("parts") or []
        texts = [p["text"] for p in parts if isinstance(p, dict) and isinstance(p.get("text"), str)]
        return "".join(texts).strip()

    def generate_json(self, prompt: str) -> Dict[str, Any]:
        """
        Generate a JSON object. The model is asked for JSON output and any
        text around the object is tolerated.

        Raises:
            ValueError: If the answer holds no JSON object
        """
        text = self.generate_content(
            prompt.strip() + "\n\nRespond ONLY with minified JSON.",
            temperature=0.0,
            response_mime_type="application/json",
        )
        logger.debug("Raw LLM output: %s", repr(text))
        return extract_json_object(text)


def extract_json_object(text: str) -> Dict[str, Any]:
    """Decode the outermost JSON object in ``text``."""
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        start = text.find("{")
        end = text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError(f"LLM did not return valid JSON: {text}")
        try:
            parsed = json.loads(text[start:end + 1])
        except json.JSONDecodeError:
            raise ValueError(f"LLM did not return valid JSON: {text}")

    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed
