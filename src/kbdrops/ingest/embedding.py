"""Embedding gateway: cache → batch → provider fallback → reassembly.

Every text is truncated to ``max_input_chars`` and looked up in an
in-process LRU cache. Only cache misses are sent to providers, in fixed-size
batches processed strictly one after another with a fixed delay between
them. Each batch tries the providers in order; each provider call is retried
with increasing backoff before the next provider is tried. If every provider
fails the whole call fails with one line per provider; nothing is returned
for a partially embedded input.

All vectors of one call share a single provider/model/dim. When a later
batch has to fall back to another provider, the texts already embedded in
this call by the earlier provider (and mismatching cache hits) are embedded
again with the fallback provider.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import litellm
from cachetools import LRUCache
from tenacity import Retrying, stop_after_attempt, wait_exponential

from kbdrops.config import EmbeddingCfg
from kbdrops.errors import EmbeddingError

logger = logging.getLogger(__name__)

litellm.suppress_debug_info = True

# LiteLLM provider prefix → API key environment variable.
_PROVIDER_ENV: dict[str, str | None] = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "cohere": "COHERE_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # local, no key required
}

# Stored provider names; LiteLLM's "gemini" prefix is Google's API.
_PROVIDER_NAMES: dict[str, str] = {"gemini": "google"}


# ------------------------------------------------------------------
# Result types
# ------------------------------------------------------------------


@dataclass(frozen=True)
class CachedEmbedding:
    embedding: list[float]
    dim: int
    provider: str
    model: str


@dataclass
class ProviderResult:
    """Outcome of one provider call for one batch: vectors or an error."""

    provider: str
    model: str
    embeddings: list[list[float]] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def dim(self) -> int:
        return len(self.embeddings[0]) if self.embeddings else 0


@dataclass
class EmbeddingResult:
    """Vectors for a whole embed call, in input order."""

    embeddings: list[list[float]]
    dim: int
    provider: str | None
    model: str | None


@dataclass
class QueryEmbedding:
    embedding: list[float]
    dim: int
    provider: str
    model: str


# ------------------------------------------------------------------
# Cache
# ------------------------------------------------------------------


class EmbeddingCache:
    """Bounded LRU map from exact (truncated) text to its embedding.

    Process-local and never a source of truth: every miss can be resolved
    by a provider call.
    """

    def __init__(self, max_size: int = 1000) -> None:
        self._entries: LRUCache[str, CachedEmbedding] = LRUCache(maxsize=max_size)
        self.hits = 0
        self.misses = 0

    def get(self, text: str) -> CachedEmbedding | None:
        entry = self._entries.get(text)
        if entry is None:
            self.misses += 1
        else:
            self.hits += 1
        return entry

    def put(self, text: str, entry: CachedEmbedding) -> None:
        self._entries[text] = entry

    def __contains__(self, text: object) -> bool:
        return text in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_size(self) -> int:
        return int(self._entries.maxsize)


# ------------------------------------------------------------------
# Providers
# ------------------------------------------------------------------


class MissingApiKeyError(EnvironmentError):
    """The provider's API key is not present in the environment."""


class LiteLLMProvider:
    """One embedding backend reached through ``litellm.embedding()``.

    Args:
        model: LiteLLM model string in 'provider/model' format.
        timeout: Per-request timeout in seconds.
    """

    def __init__(self, model: str, timeout: float = 30.0) -> None:
        self.litellm_model = model
        prefix, _, bare = model.partition("/")
        if not bare:
            prefix, bare = "openai", model
        self.prefix = prefix.lower()
        self.name = _PROVIDER_NAMES.get(self.prefix, self.prefix)
        self.model = bare
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"LiteLLMProvider({self.litellm_model!r})"

    def check_api_key(self) -> None:
        """Raise MissingApiKeyError if the provider's key env var is unset."""
        env_var = _PROVIDER_ENV.get(self.prefix, f"{self.prefix.upper()}_API_KEY")
        if env_var and not os.getenv(env_var):
            raise MissingApiKeyError(f"{env_var} not set")

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed *texts*, returning vectors aligned with the input positions.

        The response is re-sorted by each item's own ``index`` because
        providers do not all guarantee response order.
        """
        response = litellm.embedding(
            model=self.litellm_model,
            input=texts,
            timeout=self.timeout,
        )
        items = sorted(response.data, key=lambda d: _field(d, "index"))
        vectors = [list(_field(d, "embedding")) for d in items]
        if len(vectors) != len(texts):
            raise ValueError(f"expected {len(texts)} embeddings, got {len(vectors)}")
        if not vectors or len({len(v) for v in vectors}) != 1 or not vectors[0]:
            raise ValueError("provider returned empty or ragged embeddings")
        return vectors


def _field(item: object, name: str):
    """Read *name* from a LiteLLM response item (dict or attribute object)."""
    if isinstance(item, dict):
        return item[name]
    return getattr(item, name)


# ------------------------------------------------------------------
# Gateway
# ------------------------------------------------------------------


class EmbeddingGateway:
    """Turn texts into equal-length vectors, opaque as to provider.

    Args:
        providers: Provider strategies, tried in order for every batch.
        cache: Explicitly owned LRU cache (inject a fresh or seeded one in tests).
        batch_size: Texts per provider call.
        batch_delay: Seconds slept between successive batch calls.
        max_input_chars: Per-text truncation applied before lookup and send.
        retry_attempts: Attempts per provider call before falling back.
        retry_wait: tenacity wait strategy between attempts (1s, 2s, 4s …).
        sleep: Sleep function used for batch delays and retry waits.
    """

    def __init__(
        self,
        providers: Sequence[LiteLLMProvider],
        cache: EmbeddingCache | None = None,
        *,
        batch_size: int = 10,
        batch_delay: float = 0.2,
        max_input_chars: int = 8_000,
        retry_attempts: int = 3,
        retry_wait=None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not providers:
            raise ValueError("at least one embedding provider is required")
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._providers = list(providers)
        self._cache = cache if cache is not None else EmbeddingCache()
        self._batch_size = batch_size
        self._batch_delay = batch_delay
        self._max_input_chars = max_input_chars
        self._retry_attempts = retry_attempts
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=4)
        self._sleep = sleep

    @property
    def cache(self) -> EmbeddingCache:
        return self._cache

    @property
    def providers(self) -> list[LiteLLMProvider]:
        return list(self._providers)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed_texts(self, texts: Sequence[str]) -> EmbeddingResult:
        """Embed *texts*; output vectors are in input order.

        Raises:
            EmbeddingError: If every provider fails for some batch.
        """
        if not texts:
            return EmbeddingResult(embeddings=[], dim=0, provider=None, model=None)

        prepared = [t[: self._max_input_chars] for t in texts]
        entries: list[CachedEmbedding | None] = [self._cache.get(t) for t in prepared]
        missing = [i for i, e in enumerate(entries) if e is None]
        logger.debug(
            "embed_texts: %d texts, %d cached, %d to embed",
            len(prepared), len(prepared) - len(missing), len(missing),
        )

        if not missing and len({_label(e) for e in entries}) == 1:
            return _assemble(entries)

        start = 0
        while True:
            start = self._embed_indices(prepared, missing, entries, start)
            target = self._providers[start]
            label = (target.name, target.model)
            missing = [i for i, e in enumerate(entries) if _label(e) != label]
            if not missing:
                break
            logger.info(
                "Re-embedding %d text(s) with %s/%s to keep one provider per call",
                len(missing), target.name, target.model,
            )
        return _assemble(entries)

    def embed_query(self, text: str) -> QueryEmbedding:
        """Embed a single query string."""
        result = self.embed_texts([text])
        return QueryEmbedding(
            embedding=result.embeddings[0],
            dim=result.dim,
            provider=result.provider or "",
            model=result.model or "",
        )

    # ------------------------------------------------------------------
    # Batching
    # ------------------------------------------------------------------

    def _embed_indices(
        self,
        prepared: list[str],
        indices: list[int],
        entries: list[CachedEmbedding | None],
        start: int,
    ) -> int:
        """Embed ``prepared[i]`` for each i in *indices*, batch by batch.

        Providers before *start* are skipped. Returns the provider index the
        call has settled on, which only ever moves forward.
        """
        n_batches = (len(indices) + self._batch_size - 1) // self._batch_size
        for b in range(n_batches):
            batch_idx = indices[b * self._batch_size : (b + 1) * self._batch_size]
            batch = [prepared[i] for i in batch_idx]
            start, result = self._embed_batch(batch, start)
            for i, text, vector in zip(batch_idx, batch, result.embeddings):
                entry = CachedEmbedding(
                    embedding=vector,
                    dim=len(vector),
                    provider=result.provider,
                    model=result.model,
                )
                entries[i] = entry
                self._cache.put(text, entry)
            logger.debug(
                "Batch %d/%d embedded with %s/%s", b + 1, n_batches, result.provider, result.model
            )
            if b + 1 < n_batches and self._batch_delay > 0:
                self._sleep(self._batch_delay)
        return start

    def _embed_batch(self, batch: list[str], start: int) -> tuple[int, ProviderResult]:
        """Try providers from *start* in order; return the first success.

        Raises:
            EmbeddingError: listing every provider failure.
        """
        failures: list[ProviderResult] = []
        for idx in range(start, len(self._providers)):
            result = self._call_provider(self._providers[idx], batch)
            if result.ok:
                if failures:
                    logger.warning(
                        "Embedding fell back to %s/%s after: %s",
                        result.provider, result.model,
                        "; ".join(f"{f.provider}: {f.error}" for f in failures),
                    )
                return idx, result
            failures.append(result)

        lines = "\n".join(f"  {f.provider}: {f.error}" for f in failures)
        raise EmbeddingError(f"Embedding failed.\n{lines}")

    def _call_provider(self, provider: LiteLLMProvider, batch: list[str]) -> ProviderResult:
        """Call *provider* with retry/backoff and fold the outcome into a ProviderResult."""
        try:
            provider.check_api_key()
        except MissingApiKeyError as exc:
            return ProviderResult(provider.name, provider.model, error=str(exc))

        retrying = Retrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=self._retry_wait,
            sleep=self._sleep,
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "%s embedding attempt %d failed: %s",
                provider.name,
                state.attempt_number,
                state.outcome.exception() if state.outcome else "unknown",
            ),
        )
        try:
            vectors = retrying(provider.embed, batch)
        except Exception as exc:  # any provider failure triggers fallback
            return ProviderResult(provider.name, provider.model, error=_describe(exc))
        return ProviderResult(provider.name, provider.model, embeddings=vectors)


def _label(entry: CachedEmbedding | None) -> tuple[str, str] | None:
    return (entry.provider, entry.model) if entry is not None else None


def _assemble(entries: list[CachedEmbedding | None]) -> EmbeddingResult:
    first = entries[0]
    return EmbeddingResult(
        embeddings=[e.embedding for e in entries],
        dim=first.dim,
        provider=first.provider,
        model=first.model,
    )


def _describe(exc: BaseException) -> str:
    message = str(exc).strip() or exc.__class__.__name__
    return message[:300]


def build_gateway(cfg: EmbeddingCfg, cache: EmbeddingCache | None = None) -> EmbeddingGateway:
    """Construct the gateway described by *cfg* (primary, then secondary)."""
    models = [cfg.primary]
    if cfg.secondary and cfg.secondary != cfg.primary:
        models.append(cfg.secondary)
    return EmbeddingGateway(
        [LiteLLMProvider(m, timeout=cfg.timeout) for m in models],
        cache if cache is not None else EmbeddingCache(cfg.cache_size),
        batch_size=cfg.batch_size,
        batch_delay=cfg.batch_delay,
        max_input_chars=cfg.max_input_chars,
        retry_attempts=cfg.retry_attempts,
    )
