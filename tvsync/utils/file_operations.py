"""
File operation utilities

Feed download with retry logic and temporary file cleanup.
"""
import logging
import tempfile
from pathlib import Path
import asyncio

import aiofiles
import httpx


logger = logging.getLogger(__name__)


async def download_file(
    url: str,
    filename: str,
    *,
    timeout: float = 120.0,
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Path:
    """
    Download a file from URL with exponential backoff retry logic

    Retries on timeouts, connection errors and 5xx responses.
    4xx responses fail immediately.

    Args:
        url: URL to download from
        filename: Name for the temporary file
        timeout: HTTP timeout in seconds
        max_retries: Maximum number of attempts
        backoff_factor: Wait before retry n is backoff_factor ** n seconds
        transport: Optional httpx transport (tests)

    Returns:
        Path to downloaded temporary file

    Raises:
        httpx.HTTPError: If download fails after all retries
    """
    temp_file = Path(tempfile.gettempdir()) / filename
    last_error: Exception | None = None

    for attempt in range(max_retries):
        try:
            async with httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    size = 0
                    async with aiofiles.open(temp_file, 'wb') as f:
                        async for chunk in response.aiter_bytes():
                            await f.write(chunk)
                            size += len(chunk)

            logger.info("Downloaded %.2f MB to %s", size / (1024 * 1024), temp_file)
            return temp_file

        except (httpx.TimeoutException, httpx.ConnectError) as e:
            last_error = e
            reason = f"transient error: {type(e).__name__}"

        except httpx.HTTPStatusError as e:
            if 400 <= e.response.status_code < 500:
                logger.error("HTTP %s (client error): %s", e.response.status_code, e)
                raise
            last_error = e
            reason = f"HTTP {e.response.status_code} server error"

        if attempt < max_retries - 1:
            wait_time = backoff_factor ** attempt
            logger.warning(
                "Download attempt %s/%s failed (%s). Retrying in %.1fs...",
                attempt + 1,
                max_retries,
                reason,
                wait_time,
            )
            await asyncio.sleep(wait_time)
        else:
            logger.error("Download failed after %s attempts (%s)", max_retries, reason)

    if last_error:
        raise last_error

    raise RuntimeError(f"Failed to download {url} after {max_retries} attempts")


def cleanup_temp_file(file_path: Path) -> bool:
    """
    Safely delete a temporary file

    Args:
        file_path: Path to file to delete

    Returns:
        True if deleted successfully, False otherwise
    """
    if not file_path or not file_path.exists():
        return False

    try:
        file_path.unlink()
        logger.debug("Cleaned up temporary file: %s", file_path)
        return True
    except (OSError, PermissionError) as e:
        logger.warning("Failed to delete temporary file %s: %s", file_path, e)
        return False
