"""
Per-invocation construction of the pipeline's leaf components.

Each stage run gets its own StageClients. Components are created on first
use, so a receive invocation never builds a Rekognition client. Tests pass
fakes for any component to run stages without network access.
"""

import logging

from integrations.line_messaging import ImageFetcher, ReplySender
from .classifier import Classifier
from .publisher import Publisher
from .secrets import SecretResolver

logger = logging.getLogger(__name__)


class StageClients:
    """Lazily built SecretResolver, ImageFetcher, Classifier, ReplySender and Publisher."""

    def __init__(
        self,
        settings,
        secrets=None,
        image_fetcher=None,
        classifier=None,
        reply_sender=None,
        publisher=None
    ):
        self._settings = settings
        self._secrets = secrets
        self._image_fetcher = image_fetcher
        self._classifier = classifier
        self._reply_sender = reply_sender
        self._publisher = publisher
        self._owned = []

    def _own(self, component):
        self._owned.append(component)
        return component

    @property
    def secrets(self) -> SecretResolver:
        if self._secrets is None:
            self._secrets = self._own(SecretResolver(self._settings))
        return self._secrets

    @property
    def image_fetcher(self) -> ImageFetcher:
        if self._image_fetcher is None:
            self._image_fetcher = self._own(ImageFetcher(self._settings))
        return self._image_fetcher

    @property
    def classifier(self) -> Classifier:
        if self._classifier is None:
            self._classifier = self._own(Classifier(self._settings))
        return self._classifier

    @property
    def reply_sender(self) -> ReplySender:
        if self._reply_sender is None:
            self._reply_sender = self._own(ReplySender(self._settings))
        return self._reply_sender

    @property
    def publisher(self) -> Publisher:
        if self._publisher is None:
            self._publisher = self._own(Publisher(self._settings))
        return self._publisher

    def close(self) -> None:
        """Close the AWS clients and HTTP sessions opened by this instance."""
        for component in self._owned:
            try:
                component.close()
            except Exception as e:
                logger.warning(f"Failed to close {type(component).__name__}: {e}")
        self._owned = []

    def __enter__(self) -> 'StageClients':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def build_clients(settings) -> StageClients:
    """Create a fresh set of leaf components for one stage run."""
    return StageClients(settings)
