"""
vision_defect_stream/core/detection_publisher.py

Publishes confirmed detections to a Redis stream.
"""

import json
import logging
from contextlib import contextmanager
from typing import Generator, Optional

import redis

from ..utils.config import RedisConfig
from ..utils.exceptions import handle_redis_error
from .interfaces import Detection


class DetectionPublisher:
    """
    Session consumer appending each confirmed detection to a capped Redis stream.

    Entries have a single ``detection`` field holding the JSON of
    :meth:`Detection.to_dict`. Publish failures are logged and counted, never
    raised into the session.

    Example:
        >>> publisher = DetectionPublisher(RedisConfig(host="localhost"))
        >>> session.add_consumer(publisher)
    """

    def __init__(
        self,
        config: Optional[RedisConfig] = None,
        client: Optional[redis.Redis] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self._config = config or RedisConfig()
        self._logger = logger or logging.getLogger(__name__)
        self._client = client or redis.Redis(
            host=self._config.host,
            port=self._config.port,
            socket_connect_timeout=self._config.connection_timeout,
            decode_responses=True,
        )
        self.published_count = 0
        self.failed_count = 0

    @property
    def stream_name(self) -> str:
        return self._config.detection_stream

    @contextmanager
    def _redis_operation(self, operation: str, raise_on_error: bool = False) -> Generator[None, None, None]:
        """Wrap Redis errors in RedisConnectionError with host context."""
        try:
            yield
        except redis.RedisError as e:
            error = handle_redis_error(operation, self._config.host, self._config.port, e)
            self._logger.warning(str(error))
            if raise_on_error:
                raise error from e

    def ping(self) -> bool:
        """Check the connection; raises RedisConnectionError on failure."""
        with self._redis_operation("ping", raise_on_error=True):
            return bool(self._client.ping())

    def publish(self, detection: Detection) -> Optional[str]:
        """
        Append one detection to the stream.

        Returns:
            The stream entry id, or None if publishing failed
        """
        payload = json.dumps(detection.to_dict())
        entry_id = None
        with self._redis_operation("xadd"):
            entry_id = self._client.xadd(
                self.stream_name,
                {"detection": payload},
                maxlen=self._config.max_stream_length,
                approximate=True,
            )

        if entry_id is None:
            self.failed_count += 1
        else:
            self.published_count += 1
            self._logger.debug(f"Published {detection.type_label} to {self.stream_name}: {entry_id}")
        return entry_id

    __call__ = publish

    def close(self):
        with self._redis_operation("close"):
            self._client.close()
