"""
Embedding API Client.

Calls the Gemini embedContent endpoint for one text at a time. Rate limiting
(HTTP 429 / 503) and transport failures are retried with exponential backoff;
any other failure raises EmbeddingServiceError.
"""

from typing import List, Optional

import requests

from category_grouper.utils.advanced_logging import get_logger
from category_grouper.utils.error_handling import (
    EmbeddingServiceError,
    RateLimitError,
    RetryConfig,
    retry,
)

logger = get_logger(__name__)

RATE_LIMIT_STATUS_CODES = (429, 503)


class EmbeddingClient:
    """Client for the text embedding service."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-004",
        api_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 30.0,
        retry_config: Optional[RetryConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize embedding client.

        Args:
            api_key: API key sent in the x-goog-api-key header
            model: Embedding model name
            api_url: Base URL of the API
            timeout: Request timeout in seconds
            retry_config: Backoff policy for retriable failures
            session: Optional requests session (shared connection pool)
        """
        if not api_key:
            raise EmbeddingServiceError(
                "Embedding API key is not set",
                error_code="MISSING_API_KEY",
            )

        self.api_key = api_key
        self.model = model
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._embed_with_retry = retry(config=retry_config or RetryConfig())(self._embed_once)

    @property
    def endpoint(self) -> str:
        return f"{self.api_url}/models/{self.model}:embedContent"

    def embed(self, text: str) -> List[float]:
        """
        Embed one text.

        Returns:
            Embedding values

        Raises:
            RateLimitError: If still rate limited after all retries
            EmbeddingServiceError: On any other API failure
        """
        return self._embed_with_retry(text)

    def _embed_once(self, text: str) -> List[float]:
        try:
            response = self.session.post(
                self.endpoint,
                json={
                    "model": f"models/{self.model}",
                    "content": {"parts": [{"text": text}]},
                },
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            raise TimeoutError(f"Embedding request timed out after {self.timeout}s") from e
        except requests.ConnectionError as e:
            raise ConnectionError(f"Failed to connect to {self.api_url}: {e}") from e
        except requests.RequestException as e:
            raise EmbeddingServiceError(f"Embedding request failed: {e}") from e

        if response.status_code in RATE_LIMIT_STATUS_CODES:
            raise RateLimitError(
                f"Embedding API rate limited (HTTP {response.status_code})",
                details={"status_code": response.status_code},
            )

        if response.status_code >= 400:
            raise EmbeddingServiceError(
                f"Embedding API returned HTTP {response.status_code}: {response.text[:200]}",
                details={"status_code": response.status_code},
            )

        try:
            return [float(value) for value in response.json()["embedding"]["values"]]
        except (ValueError, KeyError, TypeError) as e:
            raise EmbeddingServiceError(f"Malformed embedding response: {e}") from e

    def close(self) -> None:
        """Close the HTTP session."""
        self.session.close()

    def __enter__(self) -> "EmbeddingClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
