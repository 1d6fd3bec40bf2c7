"""Embedding providers: text in, vector (or None) out.

Providers are async and safe to call concurrently. ``None`` means the text
cannot produce a meaningful embedding (blank after cleaning) and is not an
error. Real failures raise ``EmbeddingError``.

Model: BAAI/bge-small-en-v1.5 by default (384-dim, 512-token context),
loaded lazily through fastembed (ONNX runtime, no torch).
"""

from __future__ import annotations

import asyncio
import hashlib
import os
import threading
import time
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import numpy as np
import structlog

from relnotes.core.errors import EmbeddingError

if TYPE_CHECKING:
    from relnotes.config.models import EmbeddingConfig

log = structlog.get_logger()

_DEFAULT_MODEL = "BAAI/bge-small-en-v1.5"
_DEFAULT_MAX_CHARS = 1500


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Contract consumed by the indexing pipeline."""

    async def embed(self, text: str) -> list[float] | None: ...


class FastEmbedProvider:
    """fastembed-backed provider.

    The model is loaded on first use in a worker thread. Each call runs in
    the default executor under a timeout; a timeout or model error fails
    that call only.
    """

    def __init__(
        self,
        model_name: str = _DEFAULT_MODEL,
        timeout_sec: float = 30.0,
        max_chars: int = _DEFAULT_MAX_CHARS,
    ) -> None:
        self.model_name = model_name
        self.timeout_sec = timeout_sec
        self.max_chars = max_chars
        self._model: Any = None
        self._load_lock = threading.Lock()

    def _ensure_model(self) -> Any:
        """Lazy-load the fastembed TextEmbedding model."""
        with self._load_lock:
            if self._model is not None:
                return self._model
            from fastembed import TextEmbedding

            threads = max(1, (os.cpu_count() or 4) // 2)
            start = time.monotonic()
            self._model = TextEmbedding(model_name=self.model_name, threads=threads)
            log.info(
                "embedding.model_loaded",
                model=self.model_name,
                threads=threads,
                elapsed_s=round(time.monotonic() - start, 2),
            )
            return self._model

    def _embed_sync(self, text: str) -> list[float]:
        model = self._ensure_model()
        vectors = list(model.embed([text]))
        return [float(x) for x in np.asarray(vectors[0], dtype=np.float32)]

    async def ready(self) -> None:
        """Load the model ahead of the first embed call."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._ensure_model)
        except Exception as e:
            log.warning("embedding.model_load_failed", model=self.model_name, exc_info=True)
            raise EmbeddingError.provider_failure(str(e), model=self.model_name) from e

    def unload(self) -> None:
        """Drop the loaded model; the next call reloads it."""
        with self._load_lock:
            self._model = None
        log.info("embedding.model_unloaded", model=self.model_name)

    async def embed(self, text: str) -> list[float] | None:
        text = text.strip()[: self.max_chars]
        if not text:
            return None
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, self._embed_sync, text),
                timeout=self.timeout_sec,
            )
        except TimeoutError as e:
            raise EmbeddingError.timeout(self.timeout_sec) from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError.provider_failure(str(e), model=self.model_name) from e


class HashEmbeddingProvider:
    """Deterministic, model-free provider.

    Token vectors are seeded from a digest of each lowercase word and summed,
    so texts sharing words score as similar. Useful offline and in tests.
    """

    def __init__(self, dimension: int = 384) -> None:
        self.dimension = dimension

    def _token_vector(self, token: str) -> np.ndarray[Any, np.dtype[np.float32]]:
        seed = int.from_bytes(hashlib.sha256(token.encode("utf-8")).digest()[:4], "little")
        rng = np.random.RandomState(seed)
        return rng.randn(self.dimension).astype(np.float32)

    async def embed(self, text: str) -> list[float] | None:
        tokens = text.lower().split()
        if not tokens:
            return None
        vec = np.zeros(self.dimension, dtype=np.float32)
        for token in tokens:
            vec += self._token_vector(token)
        norm = float(np.linalg.norm(vec))
        if norm > 0:
            vec /= norm
        return [float(x) for x in vec]


def build_provider(config: EmbeddingConfig) -> FastEmbedProvider | HashEmbeddingProvider:
    """Construct the provider selected by ``embedding.provider``."""
    if config.provider == "hash":
        return HashEmbeddingProvider(dimension=config.dimension)
    return FastEmbedProvider(
        model_name=config.model_name,
        timeout_sec=config.timeout_sec,
        max_chars=config.max_chars,
    )
