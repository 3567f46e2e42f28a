"""Image cloning with the same bounded-wait-then-cleanup contract as provisioning."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

from node_lifecycle.compute.models import ImageResult, ResourceHandle
from node_lifecycle.compute.protocols import ImageApi
from node_lifecycle.config.models import ImageConfig
from node_lifecycle.errors import (
    CreateFailed,
    DeleteFailed,
    LifecycleError,
    ReadinessTimeout,
)
from node_lifecycle.poller import ReadinessPoller

logger = structlog.get_logger()


class ImageController:
    def __init__(
        self,
        api: ImageApi,
        *,
        image_available: Callable[[Any], bool],
        timeout: float,
        period: float = 1.0,
        transient: tuple[type[BaseException], ...] = (),
        poller: ReadinessPoller | None = None,
    ) -> None:
        self._api = api
        self._image_available = image_available
        self._timeout = timeout
        self._period = period
        self._transient = transient
        self._poller = poller or ReadinessPoller()

    @classmethod
    def from_config(
        cls,
        api: ImageApi,
        config: ImageConfig,
        *,
        image_available: Callable[[Any], bool],
        **kwargs: Any,
    ) -> ImageController:
        return cls(
            api,
            image_available=image_available,
            timeout=config.image_available_timeout_ms / 1000,
            period=config.poll_period_ms / 1000,
            **kwargs,
        )

    async def create_image(self, source_id: str, name: str) -> ImageResult:
        """Clone *source_id* into an image called *name* and wait until it is usable."""
        log = logger.bind(source_id=source_id, image_name=name)
        try:
            handle = await self._api.create_image(source_id, name)
        except LifecycleError:
            raise
        except Exception as exc:
            log.error("image.create_failed", error=str(exc))
            raise CreateFailed(
                f"Failed to clone {source_id} into image {name}: {exc}",
                resource_id=source_id,
            ) from exc
        log = log.bind(image_id=handle.id)
        log.info("image.created")

        async def _available() -> bool:
            state = await self._api.get_image(handle.id)
            handle.status = state
            return state is not None and bool(self._image_available(state))

        outcome = await self._poller.poll(
            _available,
            period=self._period,
            timeout=self._timeout,
            transient=self._transient,
            label=f"image:{handle.id}",
        )
        if not outcome.ready:
            log.warning("image.timed_out", elapsed=outcome.elapsed, timeout=self._timeout)
            cleanup_error = await self._discard(handle, log)
            raise ReadinessTimeout(
                f"Image {name} did not become available",
                cleanup_error=cleanup_error,
                resource_id=handle.id,
                elapsed=outcome.elapsed,
                timeout=self._timeout,
                last_state=handle.status,
            )

        log.info("image.available", elapsed=outcome.elapsed, attempts=outcome.attempts)
        return ImageResult(handle=handle, elapsed=outcome.elapsed)

    async def delete_image(self, image_id: str) -> bool:
        """Delete *image_id*; True when a follow-up read no longer finds it."""
        try:
            await self._api.delete_image(image_id)
        except LifecycleError:
            raise
        except Exception as exc:
            logger.error("image.delete_failed", image_id=image_id, error=str(exc))
            raise DeleteFailed(
                f"Delete of image failed: {exc}", resource_id=image_id
            ) from exc
        gone = await self._api.get_image(image_id) is None
        if gone:
            logger.info("image.deleted", image_id=image_id)
        else:
            logger.warning("image.still_present", image_id=image_id)
        return gone

    async def _discard(self, handle: ResourceHandle, log: Any) -> BaseException | None:
        try:
            await self._api.delete_image(handle.id)
        except Exception as exc:
            log.warning("image.rollback_failed", error=str(exc))
            return exc
        log.info("image.rolled_back")
        return None
