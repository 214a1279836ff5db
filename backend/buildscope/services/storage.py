import asyncio
import logging
from collections.abc import Awaitable, Callable

import httpx
from supabase import Client
from tenacity import AsyncRetrying, before_sleep_log, retry_if_exception, stop_after_attempt

from buildscope.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

DOCUMENT_TYPES = {
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "text/markdown",
}


def exponential_backoff(base: float = 1.0) -> Callable[[int], float]:
    """Delay before retry ``n`` (1-based): base, 2*base, 4*base, ..."""

    def delay(retry: int) -> float:
        return base * 2 ** (retry - 1)

    return delay


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    # storage3 raises with a dict payload: {"statusCode": ..., "error": ..., "message": ...}
    if exc.args and isinstance(exc.args[0], dict):
        value = exc.args[0].get("statusCode")
        if isinstance(value, int):
            return value
        if isinstance(value, str) and value.isdigit():
            return int(value)
    return None


def is_transient(exc: BaseException) -> bool:
    status = _status_of(exc)
    if status is not None:
        return status in (408, 429) or status >= 500
    return isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError))


def validate_upload(
    content_type: str | None,
    size: int,
    max_bytes: int,
    allowed: set[str] | None = None,
    prefix: str | None = None,
) -> None:
    """Reject bad MIME types and oversized files before any network call."""
    content_type = content_type or ""
    if prefix is not None and not content_type.startswith(prefix):
        raise ValidationError(f"Only {prefix.rstrip('/')} files are allowed")
    if allowed is not None and content_type not in allowed:
        raise ValidationError(f"Unsupported file type: {content_type or 'unknown'}")
    if size == 0:
        raise ValidationError("File is empty")
    if size > max_bytes:
        raise ValidationError(f"File size must be less than {max_bytes // (1024 * 1024)}MB")


class StorageUploader:
    """Save blobs to Supabase Storage and issue read URLs, with retries.

    Each step is attempted up to ``max_attempts`` times, sleeping
    ``backoff(n)`` seconds before retry ``n``. Only transient errors are
    retried. When either step finally fails the blob is removed so no
    orphan is left behind.
    """

    def __init__(
        self,
        supabase: Client,
        max_attempts: int = 3,
        backoff_base: float = 1.0,
        signed_url_ttl: int = 3600,
        backoff: Callable[[int], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.supabase = supabase
        self.max_attempts = max_attempts
        self.signed_url_ttl = signed_url_ttl
        self.backoff = backoff or exponential_backoff(backoff_base)
        self.sleep = sleep

    async def _with_retry(self, label: str, fn: Callable[[], object]):
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=lambda state: self.backoff(state.attempt_number),
            retry=retry_if_exception(is_transient),
            sleep=self.sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await asyncio.to_thread(fn)
        except Exception as e:
            logger.error(
                "Storage %s failed after %d attempt(s): %s",
                label, retrying.statistics.get("attempt_number", 1), e,
            )
            raise

    async def remove(self, bucket: str, path: str) -> None:
        try:
            await asyncio.to_thread(self.supabase.storage.from_(bucket).remove, [path])
            logger.info("Removed orphaned blob %s/%s", bucket, path)
        except Exception as e:
            logger.error("Failed to remove orphaned blob %s/%s: %s", bucket, path, e)

    async def upload(
        self,
        bucket: str,
        path: str,
        data: bytes,
        content_type: str,
        public: bool = False,
    ) -> str:
        """Store ``data`` at ``bucket/path`` and return a URL to read it."""
        store = self.supabase.storage.from_(bucket)

        try:
            await self._with_retry(
                "save",
                lambda: store.upload(path, data, {"content-type": content_type}),
            )
        except Exception as e:
            # A failed upload can still leave a partial object behind.
            await self.remove(bucket, path)
            raise StorageError("Failed to upload file") from e

        try:
            if public:
                url = await self._with_retry("public url", lambda: store.get_public_url(path))
            else:
                signed = await self._with_retry(
                    "signed url",
                    lambda: store.create_signed_url(path, self.signed_url_ttl),
                )
                url = signed.get("signedURL") or signed.get("signedUrl")
                if not url:
                    raise StorageError("Storage returned no signed URL")
        except Exception as e:
            await self.remove(bucket, path)
            if isinstance(e, StorageError):
                raise
            raise StorageError("Failed to generate file URL") from e

        return url
