"""Google Gemini embedding backend."""

import asyncio
import logging
import os

from google import genai
from google.genai import errors, types

from vecsync.constants import DEFAULT_GEMINI_EMBEDDING_MODEL, EMBED_TIMEOUT, PROBE_TIMEOUT
from vecsync.exceptions import ModelNotFoundError, TransientBackendError

logger = logging.getLogger(__name__)

GEMINI_DIMENSION = 768


class GeminiEmbedder:
    """Embedding backend using the Google Gemini API.

    The API key is read from the GEMINI_API_KEY environment variable by the
    client itself; without it the backend reports itself unavailable.
    """

    name = "gemini"

    def __init__(
        self,
        model: str = DEFAULT_GEMINI_EMBEDDING_MODEL,
        dimension: int | None = None,
        timeout: float = EMBED_TIMEOUT,
    ) -> None:
        self.model = model
        self.dimension = dimension or GEMINI_DIMENSION
        self.timeout = timeout
        self._client: genai.Client | None = None
        logger.info(f"🤖 Initializing GeminiEmbedder: model={model}")

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client()
        return self._client

    async def embed(self, text: str) -> list[float]:
        try:
            response = await asyncio.wait_for(
                self.client.aio.models.embed_content(
                    model=self.model,
                    contents=[text],
                    config=types.EmbedContentConfig(output_dimensionality=self.dimension),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise TransientBackendError(f"Gemini embed timed out after {self.timeout}s") from e
        except errors.ServerError as e:
            raise TransientBackendError(f"Gemini server error: {e}") from e
        except errors.ClientError as e:
            if e.code == 404:
                raise ModelNotFoundError(self.model) from e
            if e.code == 429:
                raise TransientBackendError(f"Gemini rate limited: {e}") from e
            raise

        return list(response.embeddings[0].values)

    async def check_connection(self) -> bool:
        if not os.getenv("GEMINI_API_KEY") and not os.getenv("GOOGLE_API_KEY"):
            logger.debug("Gemini probe skipped: no API key in environment")
            return False
        try:
            await asyncio.wait_for(self.client.aio.models.get(model=self.model), timeout=PROBE_TIMEOUT * 5)
            return True
        except (asyncio.TimeoutError, errors.APIError) as e:
            logger.debug(f"Gemini probe failed: {e}")
            return False

    def get_dimension(self) -> int:
        return self.dimension

    async def pull_model(self) -> bool:
        # Hosted models cannot be provisioned from the client side
        return False
