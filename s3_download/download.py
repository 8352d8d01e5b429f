import codecs
import logging
import os
import queue
import tempfile
import threading

from botocore.exceptions import ClientError

from typing import Any, BinaryIO, Callable, Optional, TypeVar, Union

from s3_download.client import create_client
from s3_download.transfer_config import DownloadOptions, ObjectTarget, TransferConfig
from s3_download.transfer_config import validate_options


logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024
_NOT_FOUND_CODES = ("404", "NoSuchKey", "NotFound")

DEFAULT_DOWNLOAD_FILENAME = "aws-s3-download"


class NotFoundError(Exception):
    pass


class SizeExceeded(Exception):
    """Raised when a string download reaches the configured `max_size`."""
    pass


class TransferTimeoutError(IOError):
    """Exception raised by timeout when a transfer does not settle in time."""
    pass


T = TypeVar("T")


def timeout(
        seconds: float, worker: Callable[[], T],
        on_timeout: Optional[Callable[[], None]] = None) -> T:
    result_queue: queue.Queue[Union[BaseException, T]] = queue.Queue()

    def wrapper() -> None:
        try:
            result_queue.put(worker())
        except BaseException as e:
            result_queue.put(e)

    thread = threading.Thread(target=wrapper)
    thread.daemon = True
    thread.start()

    try:
        result = result_queue.get(True, seconds)
    except queue.Empty:
        if on_timeout is not None:
            on_timeout()
        raise TransferTimeoutError(f"Transfer did not complete within {seconds} seconds")

    if isinstance(result, BaseException):
        raise result
    return result


def default_temp_directory() -> str:
    return tempfile.gettempdir()


class _Cancellation(object):
    """Shared between a timed-out caller and the worker still running the transfer.

    Cancelling closes the attached stream, which interrupts a blocked read.
    """

    def __init__(self) -> None:
        self.event = threading.Event()
        self._lock = threading.Lock()
        self._stream: Optional[BinaryIO] = None

    def attach(self, stream: BinaryIO) -> None:
        with self._lock:
            self._stream = stream
        _check_cancelled(self.event)

    def cancel(self) -> None:
        with self._lock:
            self.event.set()
            stream = self._stream
        if stream is not None:
            stream.close()


def _check_cancelled(cancelled: Optional[threading.Event]) -> None:
    if cancelled is not None and cancelled.is_set():
        raise TransferTimeoutError("Transfer was cancelled after timing out")


def accumulate(
        stream: BinaryIO, max_size: Optional[int] = None, encoding: str = "utf-8",
        chunk_size: int = _CHUNK_SIZE, cancelled: Optional[threading.Event] = None) -> str:
    """Read `stream` to the end and return its contents as text.

    Chunks are decoded as UTF-8. When `max_size` is set, the accumulated text is
    measured in bytes under `encoding` after every chunk, and SizeExceeded is
    raised as soon as it reaches `max_size`; the stream is not read again after
    that. Errors raised by the stream propagate unchanged. Once `cancelled` is
    set, nothing more is appended and TransferTimeoutError is raised.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    encoder = codecs.getincrementalencoder(encoding)() if max_size else None
    pieces = []
    size = 0

    while True:
        chunk = stream.read(chunk_size)
        _check_cancelled(cancelled)

        text = decoder.decode(chunk or b"", final=not chunk)
        pieces.append(text)

        if text and encoder is not None and max_size:
            size += len(encoder.encode(text))
            if size >= max_size:
                raise SizeExceeded("string size exceeded")

        if not chunk:
            break

    return "".join(pieces)


def save_to_file(
        stream: BinaryIO, out_file: BinaryIO, chunk_size: int = _CHUNK_SIZE,
        cancelled: Optional[threading.Event] = None) -> None:
    while True:
        chunk = stream.read(chunk_size)
        _check_cancelled(cancelled)
        if not chunk:
            break
        out_file.write(chunk)


def resolve_destination(
        download: Optional[DownloadOptions],
        temp_directory_provider: Callable[[], str] = default_temp_directory) -> str:
    """Return the file path a download should be written to.

    Without a destination directory, a fresh staging directory is created under
    the temp directory; the caller is responsible for removing it.
    """
    download = download or DownloadOptions()
    dest_file = str(download.dest_file) if download.dest_file else DEFAULT_DOWNLOAD_FILENAME

    if download.dest_directory:
        return os.path.join(str(download.dest_directory), dest_file)

    parent = download.temp_directory or temp_directory_provider()
    staging_directory = tempfile.mkdtemp(dir=str(parent))

    return os.path.join(staging_directory, dest_file)


def _open_object_stream(client: Any, target: ObjectTarget) -> BinaryIO:
    try:
        response = client.get_object(Bucket=target.bucket, Key=target.key)
    except ClientError as original_exc:
        if original_exc.response["Error"]["Code"] in _NOT_FOUND_CODES:
            raise NotFoundError("No File Found") from original_exc
        raise original_exc

    if "Body" not in response:
        raise NotFoundError("No File Found")

    return response["Body"]


class S3Downloader(object):
    """Downloads S3 objects into strings or files.

    `client_factory` builds an S3 client from a ClientConfig and
    `temp_directory_provider` returns the parent directory for staging
    directories. When `timeout` is set, a transfer that has not settled after
    that many seconds raises TransferTimeoutError.
    """

    def __init__(
            self,
            client_factory: Callable[..., Any] = create_client,
            temp_directory_provider: Callable[[], str] = default_temp_directory,
            timeout: Optional[float] = None) -> None:
        self._client_factory = client_factory
        self._temp_directory_provider = temp_directory_provider
        self._timeout = timeout

    def _run(self, worker: Callable[[_Cancellation], T]) -> T:
        cancellation = _Cancellation()
        if self._timeout is None:
            return worker(cancellation)
        return timeout(
            self._timeout, lambda: worker(cancellation), on_timeout=cancellation.cancel)

    def download_to_string(self, config: TransferConfig) -> str:
        validate_options(config)
        return self._run(lambda cancellation: self._download_to_string(config, cancellation))

    def download_to_file(self, config: TransferConfig) -> str:
        validate_options(config)
        return self._run(lambda cancellation: self._download_to_file(config, cancellation))

    def _download_to_string(self, config: TransferConfig, cancellation: _Cancellation) -> str:
        client = self._client_factory(config.client)

        logger.debug(f"Downloading {config.get_sanitized_uri()} to string")
        stream = self._open_stream(client, config)
        try:
            cancellation.attach(stream)
            contents = accumulate(
                stream, config.max_size, config.max_size_encoding,
                cancelled=cancellation.event)
        except SizeExceeded:
            logger.warning(
                f"{config.get_sanitized_uri()} reached the size limit of {config.max_size} bytes")
            raise
        finally:
            stream.close()

        logger.info(f"Downloaded {len(contents)} characters from {config.get_sanitized_uri()}")
        return contents

    def _download_to_file(self, config: TransferConfig, cancellation: _Cancellation) -> str:
        client = self._client_factory(config.client)

        destination = resolve_destination(config.download, self._temp_directory_provider)

        logger.debug(f"Downloading {config.get_sanitized_uri()} to {destination}")
        with open(destination, "wb") as out_file:
            stream = self._open_stream(client, config)
            try:
                cancellation.attach(stream)
                save_to_file(stream, out_file, cancelled=cancellation.event)
            finally:
                stream.close()

        logger.info(f"Downloaded {config.get_sanitized_uri()} to {destination}")
        return destination

    def _open_stream(self, client: Any, config: TransferConfig) -> BinaryIO:
        try:
            return _open_object_stream(client, config.target)
        except NotFoundError:
            logger.warning(f"{config.get_sanitized_uri()} does not exist")
            raise


_default_downloader = S3Downloader()


def download_to_string(config: TransferConfig) -> str:
    return _default_downloader.download_to_string(config)


def download_to_file(config: TransferConfig) -> str:
    return _default_downloader.download_to_file(config)
