from s3_download.client import create_client
from s3_download.download import download_to_file, download_to_string, S3Downloader
from s3_download.download import NotFoundError, SizeExceeded, TransferTimeoutError
from s3_download.transfer_config import ClientConfig, Credentials, DownloadOptions, ObjectTarget
from s3_download.transfer_config import InvalidShape, InvalidTransferConfig, InvalidTransferUri
from s3_download.transfer_config import MissingCredentials, MissingObjectTarget
from s3_download.transfer_config import TransferConfig, validate_options


__all__ = [
    "ClientConfig",
    "create_client",
    "Credentials",
    "download_to_file",
    "download_to_string",
    "DownloadOptions",
    "InvalidShape",
    "InvalidTransferConfig",
    "InvalidTransferUri",
    "MissingCredentials",
    "MissingObjectTarget",
    "NotFoundError",
    "ObjectTarget",
    "S3Downloader",
    "SizeExceeded",
    "TransferConfig",
    "TransferTimeoutError",
    "validate_options",
]
