import io
import tempfile
import threading

from typing import Any, Dict, List, Optional, Sequence, Union
from typing_extensions import Buffer
from mypy_extensions import TypedDict

from s3_download.transfer_config import ClientConfig, Credentials, DownloadOptions, ObjectTarget
from s3_download.transfer_config import TransferConfig


class TempDirectory(object):

    def __init__(self, parent: Optional[str] = None) -> None:
        self.directory = tempfile.TemporaryDirectory(dir=parent)

    @property
    def name(self) -> str:
        return self.directory.name

    def cleanup(self) -> None:
        self.directory.cleanup()

    def __enter__(self) -> "TempDirectory":
        return self

    def __exit__(self, *args: Any, **kwargs: Any) -> None:
        self.cleanup()


class ChunkedStream(io.RawIOBase):
    """Replays `events` from read(): bytes are returned as chunks, exceptions are
    raised. Reads past the last event return b"" (end of data)."""

    def __init__(self, events: Sequence[Union[bytes, BaseException]]) -> None:
        self.events = list(events)
        self.read_count = 0
        self.close_count = 0

    def read(self, size: Optional[int] = -1) -> bytes:
        self.read_count += 1
        if not self.events:
            return b""
        event = self.events.pop(0)
        if isinstance(event, BaseException):
            raise event
        return event

    def close(self) -> None:
        self.close_count += 1


class GatedStream(ChunkedStream):
    """A ChunkedStream whose reads block until `gate` is set."""

    def __init__(
            self, events: Sequence[Union[bytes, BaseException]], gate: threading.Event) -> None:
        super().__init__(events)
        self.gate = gate
        self.reading = threading.Event()
        self.closed_by_reader = threading.Event()
        self.reader: Optional[threading.Thread] = None

    def read(self, size: Optional[int] = -1) -> bytes:
        self.reader = threading.current_thread()
        self.reading.set()
        self.gate.wait()
        return super().read(size)

    def close(self) -> None:
        super().close()
        if threading.current_thread() is self.reader:
            self.closed_by_reader.set()


class FileSpy(io.BytesIO):

    def __init__(self) -> None:
        self.chunks: List[bytes] = []
        self.index = 0
        self.name = ""

    def write(self, chunk: Buffer) -> int:
        raw = bytes(chunk)
        rawlen = len(raw)
        self.chunks.append(raw)
        self.index += rawlen
        return rawlen

    def assert_written(self, assertion: bytes) -> None:
        assert b"".join(self.chunks) == assertion

    def assert_number_of_chunks(self, n: int) -> None:
        assert n == len(self.chunks)


TransferOptions = TypedDict("TransferOptions", {
    "config": Dict[str, Any],
    "object": Dict[str, str],
    "max_size": int,
    "max_size_encoding": str,
    "download": Dict[str, str]
}, total=False)


def create_transfer_options() -> TransferOptions:
    return {
        "config": {
            "credentials": {
                "aws_access_key_id": "fake",
                "aws_secret_access_key": "key"
            }
        },
        "object": {"Bucket": "somebucket", "Key": "filekey"}
    }


def create_transfer_config(
        max_size: Optional[int] = None,
        max_size_encoding: str = "utf-8",
        download: Optional[DownloadOptions] = None) -> TransferConfig:
    return TransferConfig(
        client=ClientConfig(credentials=Credentials("fake", "key")),
        target=ObjectTarget(bucket="somebucket", key="filekey"),
        max_size=max_size,
        max_size_encoding=max_size_encoding,
        download=download)
