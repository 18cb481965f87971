"""
Gallery of known face embeddings.

Matches the embedding produced by a float-model pipeline against registered
identities and fills in the label and distance of the recognition.
"""

import logging
from typing import List, Optional, Union

import numpy as np
from sklearn.metrics.pairwise import cosine_similarity

from .models import Recognition

logger = logging.getLogger(__name__)


class EmbeddingGallery:
    """Named embeddings compared by cosine distance."""

    def __init__(self, threshold: Optional[float] = None):
        """
        Args:
            threshold: Largest cosine distance accepted as a match (None = any)
        """
        self.threshold = threshold
        self._names: List[str] = []
        self._embeddings: List[np.ndarray] = []

    def __len__(self) -> int:
        return len(self._names)

    @property
    def names(self) -> List[str]:
        return list(self._names)

    def register(self, name: str, embedding: Union[np.ndarray, Recognition]):
        """Add an identity. Several embeddings may share one name."""
        vector = _as_vector(embedding)
        if self._embeddings and vector.shape != self._embeddings[0].shape:
            raise ValueError(
                f"Embedding length {vector.shape[0]} does not match gallery "
                f"length {self._embeddings[0].shape[0]}"
            )
        self._names.append(name)
        self._embeddings.append(vector)
        logger.debug("Registered %s (%d entries)", name, len(self._names))

    def match(self, query: Union[np.ndarray, Recognition]) -> Optional[Recognition]:
        """
        Find the nearest registered identity.

        Args:
            query: Embedding vector, or an embedding recognition

        Returns:
            A recognition labelled with the nearest name and scored with its
            cosine distance, or None if the gallery is empty or nothing is
            within the threshold
        """
        if not self._embeddings:
            return None

        vector = _as_vector(query)
        similarities = cosine_similarity([vector], np.stack(self._embeddings))[0]
        best = int(np.argmax(similarities))
        distance = float(1.0 - similarities[best])

        if self.threshold is not None and distance > self.threshold:
            return None

        if isinstance(query, Recognition):
            return Recognition(
                id=query.id,
                label=self._names[best],
                score=distance,
                box=query.box,
                embedding=query.embedding,
            )
        return Recognition(id="0", label=self._names[best], score=distance, embedding=vector)


def _as_vector(value: Union[np.ndarray, Recognition]) -> np.ndarray:
    if isinstance(value, Recognition):
        if value.embedding is None:
            raise ValueError(f"Recognition {value.id} carries no embedding")
        value = value.embedding
    return np.asarray(value, dtype=np.float32).reshape(-1)
