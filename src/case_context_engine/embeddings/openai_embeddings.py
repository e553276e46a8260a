"""
Embeddings Module - Single Responsibility: Generate text embeddings.

It has ONE job: convert text to vector embeddings.
- No database logic, no document handling
- Easy to swap for different embedding providers

Both providers are async; the OpenAI one uses AsyncOpenAI so an embedding
call suspends the event loop instead of blocking it.
"""

from __future__ import annotations

import hashlib
import re

import numpy as np
from openai import AsyncOpenAI

# Inputs beyond this length are truncated before embedding
MAX_INPUT_CHARS = 8000

_TOKEN_RE = re.compile(r"[a-z0-9]+")


class OpenAIEmbeddings:
    """
    OpenAI-based embedding provider.

    Uses text-embedding-3-small by default (1536 dimensions).
    The client is injected or created once per provider instance and
    released with close().
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self.model = model
        self._client = client or AsyncOpenAI(api_key=api_key)

    @property
    def dimensions(self) -> int:
        """Return embedding dimensions for the model."""
        model_dims = {
            "text-embedding-3-small": 1536,
            "text-embedding-3-large": 3072,
            "text-embedding-ada-002": 1536,
        }
        return model_dims.get(self.model, 1536)

    async def embed(self, text: str) -> np.ndarray:
        """Generate embedding for a single text."""
        response = await self._client.embeddings.create(
            input=text[:MAX_INPUT_CHARS],
            model=self.model,
        )
        return np.array(response.data[0].embedding, dtype=np.float32)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts efficiently."""
        if not texts:
            return []

        response = await self._client.embeddings.create(
            input=[t[:MAX_INPUT_CHARS] for t in texts],
            model=self.model,
        )
        return [
            np.array(item.embedding, dtype=np.float32)
            for item in response.data
        ]

    async def close(self) -> None:
        await self._client.close()


class MockEmbeddings:
    """
    Mock embedding provider for testing without API calls.

    Hashes each lowercase word into a bucket (feature hashing) and
    L2-normalises the result, so identical texts embed identically and
    texts sharing words land close together under cosine distance.
    NOT for production use - only for testing/development.
    """

    def __init__(self, dimensions: int = 1536):
        self._dimensions = dimensions

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def _vector(self, text: str) -> np.ndarray:
        vec = np.zeros(self._dimensions, dtype=np.float32)
        for token in _TOKEN_RE.findall(text.lower()):
            digest = hashlib.sha256(token.encode()).digest()
            index = int.from_bytes(digest[:4], "big") % self._dimensions
            sign = 1.0 if digest[4] % 2 == 0 else -1.0
            vec[index] += sign
        norm = np.linalg.norm(vec)
        if norm > 0:
            vec /= norm
        return vec

    async def embed(self, text: str) -> np.ndarray:
        """Generate deterministic pseudo-embedding from hashed words."""
        return self._vector(text)

    async def embed_batch(self, texts: list[str]) -> list[np.ndarray]:
        """Generate embeddings for multiple texts."""
        return [self._vector(text) for text in texts]

    async def close(self) -> None:
        pass


def get_embedding_provider(
    use_mock: bool = False,
    model: str = "text-embedding-3-small",
    api_key: str | None = None,
    dimensions: int = 1536,
) -> OpenAIEmbeddings | MockEmbeddings:
    """
    Factory function to get the appropriate embedding provider.

    Args:
        use_mock: If True, return MockEmbeddings (for testing)
        model: OpenAI embedding model name
        api_key: OpenAI API key (falls back to OPENAI_API_KEY in the SDK)
        dimensions: Vector size for MockEmbeddings
    """
    if use_mock:
        return MockEmbeddings(dimensions=dimensions)
    return OpenAIEmbeddings(model=model, api_key=api_key)
