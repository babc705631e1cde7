"""
Image storage backends.

The service layer only talks to the ``ImageStore`` interface: ``save``
returns a ``StoredImage`` whose ``url`` is persisted as the image's
file path, ``delete`` is best-effort and reports whether anything was
actually removed.

- ``LocalImageStore`` writes to ``UPLOAD_DIR`` and serves files under
  ``UPLOAD_URL_PREFIX`` (mounted as static files in ``newsdesk.main``).
- ``ImgBBImageStore`` pushes base64 payloads to the ImgBB upload API
  and stores the returned URL.  ImgBB offers no delete call, so deletes
  only drop our record.
"""
import base64
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

import httpx
from starlette.concurrency import run_in_threadpool

from newsdesk.config import Settings, settings
from newsdesk.exceptions import UpstreamError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredImage:
    file_name: str
    url: str
    file_size: int


class ImageStore:
    """Common upload validation; subclasses implement the transport."""

    def __init__(self, max_size: int, allowed_extensions: list[str]) -> None:
        self.max_size = max_size
        self.allowed_extensions = [ext.lower() for ext in allowed_extensions]

    def check_size(self, size: int) -> None:
        if size > self.max_size:
            raise ValidationError(
                f"File is too large. Maximum size is {self.max_size // 1024 // 1024}MB"
            )

    def validate(self, file_name: str | None, content: bytes) -> str:
        """Return the lower-cased extension of an acceptable upload."""
        if not file_name or not content:
            raise ValidationError("No file was uploaded or the file is empty")
        self.check_size(len(content))
        extension = PurePosixPath(file_name).suffix.lower()
        if extension not in self.allowed_extensions:
            raise ValidationError(
                "File type not allowed. Allowed types: " + ", ".join(self.allowed_extensions)
            )
        return extension

    async def save(self, file_name: str | None, content: bytes) -> StoredImage:
        raise NotImplementedError

    async def delete(self, url: str) -> bool:
        raise NotImplementedError

    async def close(self) -> None:
        pass


class LocalImageStore(ImageStore):
    def __init__(
        self,
        directory: str | Path,
        url_prefix: str,
        max_size: int,
        allowed_extensions: list[str],
    ) -> None:
        super().__init__(max_size, allowed_extensions)
        self.directory = Path(directory)
        self.url_prefix = url_prefix.rstrip("/")

    async def save(self, file_name: str | None, content: bytes) -> StoredImage:
        extension = self.validate(file_name, content)
        stored_name = f"{uuid.uuid4()}{extension}"
        target = self.directory / stored_name
        self.directory.mkdir(parents=True, exist_ok=True)
        await run_in_threadpool(target.write_bytes, content)
        logger.info("Stored image %s (%d bytes)", stored_name, len(content))
        return StoredImage(
            file_name=file_name,
            url=f"{self.url_prefix}/{stored_name}",
            file_size=len(content),
        )

    async def delete(self, url: str) -> bool:
        if not url.startswith(self.url_prefix + "/"):
            return False
        # Only ever delete a direct child of the upload directory.
        name = PurePosixPath(url[len(self.url_prefix) + 1:]).name
        target = self.directory / name
        if not name or not target.is_file():
            return False
        try:
            await run_in_threadpool(target.unlink)
        except OSError as exc:
            logger.warning("Could not delete %s: %s", target, exc)
            return False
        return True


class ImgBBImageStore(ImageStore):
    def __init__(
        self,
        api_key: str,
        client: httpx.AsyncClient,
        upload_url: str,
        max_size: int,
        allowed_extensions: list[str],
    ) -> None:
        if not api_key:
            raise ValueError("IMGBB_API_KEY must be set when IMAGE_STORAGE is 'imgbb'")
        super().__init__(max_size, allowed_extensions)
        self.api_key = api_key
        self.client = client
        self.upload_url = upload_url

    async def save(self, file_name: str | None, content: bytes) -> StoredImage:
        self.validate(file_name, content)
        payload = {"key": self.api_key, "image": base64.b64encode(content).decode("ascii")}
        try:
            response = await self.client.post(self.upload_url, data=payload)
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Upload error: {exc}") from exc

        if response.is_error:
            raise UpstreamError(f"Upload failed: {_error_text(response)}")

        try:
            body = response.json()
        except ValueError as exc:
            raise UpstreamError("Upload failed: image host returned invalid JSON") from exc
        url = (body.get("data") or {}).get("url") if body.get("success") else None
        if not url:
            raise UpstreamError("Upload failed: Unknown error")

        logger.info("Uploaded image %s to image host", file_name)
        return StoredImage(file_name=file_name, url=url, file_size=len(content))

    async def delete(self, url: str) -> bool:
        logger.info("Image host has no delete API; leaving %s in place", url)
        return False

    async def close(self) -> None:
        await self.client.aclose()


def _error_text(response: httpx.Response) -> str:
    try:
        error = response.json().get("error")
    except ValueError:
        error = None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if error:
        return str(error)
    text = response.text
    return text if len(text) <= 100 else text[:100] + "..."


def build_image_store(config: Settings = settings) -> ImageStore:
    """Create the store selected by ``IMAGE_STORAGE``."""
    if config.IMAGE_STORAGE == "imgbb":
        return ImgBBImageStore(
            api_key=config.IMGBB_API_KEY or "",
            client=httpx.AsyncClient(timeout=config.IMAGE_HOST_TIMEOUT),
            upload_url=config.IMGBB_UPLOAD_URL,
            max_size=config.MAX_IMAGE_SIZE,
            allowed_extensions=config.ALLOWED_IMAGE_EXTENSIONS,
        )
    if config.IMAGE_STORAGE == "local":
        return LocalImageStore(
            directory=config.UPLOAD_DIR,
            url_prefix=config.UPLOAD_URL_PREFIX,
            max_size=config.MAX_IMAGE_SIZE,
            allowed_extensions=config.ALLOWED_IMAGE_EXTENSIONS,
        )
    raise ValueError(f"Unknown IMAGE_STORAGE backend: {config.IMAGE_STORAGE!r}")
