import codecs
import json
from urllib.parse import parse_qs, unquote, urlparse

from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Type


DEFAULT_MAX_SIZE_ENCODING = "utf-8"


class InvalidTransferConfig(RuntimeError):
    """Base class for errors raised while validating a transfer configuration."""
    pass


class InvalidShape(InvalidTransferConfig):
    """The configuration, or one of its sections, has the wrong type."""
    pass


class InvalidTransferUri(InvalidShape):
    """Invalid transfer URI was specified."""
    pass


class MissingCredentials(InvalidTransferConfig):
    pass


class MissingObjectTarget(InvalidTransferConfig):
    pass


class Credentials(NamedTuple):
    access_key_id: Optional[str]
    secret_access_key: Optional[str]
    session_token: Optional[str] = None


class ClientConfig(NamedTuple):
    credentials: Optional[Credentials] = None
    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    options: Optional[Dict[str, Any]] = None


class ObjectTarget(NamedTuple):
    bucket: Optional[str]
    key: Optional[str]


class DownloadOptions(NamedTuple):
    dest_file: Optional[str] = None
    dest_directory: Optional[str] = None
    temp_directory: Optional[str] = None


def _section(options: Mapping[str, Any], name: str) -> Optional[Mapping[str, Any]]:
    value = options.get(name)
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise InvalidShape(f"`{name}` must be a mapping")
    return value


def _parse_max_size(value: Any, error_class: Type[InvalidShape] = InvalidShape) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise error_class(f"`max_size` must be an integer, got {value!r}")


def _get_optional_query_parameter(
        parsed_query: Dict[str, List[str]], parameter: str) -> Optional[str]:
    query_arg = parsed_query.get(parameter, [])
    if len(query_arg) > 1:
        raise InvalidTransferUri(f"Too many `{parameter}` query values.")
    return query_arg[0] if len(query_arg) else None


class TransferConfig(NamedTuple):
    """Everything needed to download a single object.

    A config is built by the caller for one transfer and is never mutated. Use
    `from_mapping` to build one from plain data (e.g. parsed JSON) or
    `from_uri` to build one from a storage URI of the form:

      s3://<access_key>:<access_secret>@<bucket>/<key>?region=<region>&max_size=<bytes>

    The credentials may instead be passed as URL-encoded JSON in the username:

      s3://<url-encoded {"version": 1, "key_id": ..., "access_secret": ...}>@<bucket>/<key>
    """

    client: ClientConfig
    target: ObjectTarget
    max_size: Optional[int] = None
    max_size_encoding: str = DEFAULT_MAX_SIZE_ENCODING
    download: Optional[DownloadOptions] = None

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> "TransferConfig":
        if not isinstance(options, Mapping):
            raise InvalidShape("options must be a mapping with `config` and `object` keys")

        client_options = _section(options, "config") or {}
        credentials_options = _section(client_options, "credentials")
        object_options = _section(options, "object")
        download_options = _section(options, "download")
        sdk_options = _section(client_options, "options")

        credentials = None
        if credentials_options is not None:
            credentials = Credentials(
                access_key_id=credentials_options.get("aws_access_key_id"),
                secret_access_key=credentials_options.get("aws_secret_access_key"),
                session_token=credentials_options.get("aws_session_token"))

        target = ObjectTarget(bucket=None, key=None)
        if object_options is not None:
            target = ObjectTarget(
                bucket=object_options.get("Bucket"), key=object_options.get("Key"))

        download = None
        if download_options is not None:
            download = DownloadOptions(
                dest_file=download_options.get("dest_file"),
                dest_directory=download_options.get("dest_directory"),
                temp_directory=download_options.get("temp_directory"))

        return cls(
            client=ClientConfig(
                credentials=credentials,
                region_name=client_options.get("region_name"),
                endpoint_url=client_options.get("endpoint_url"),
                options=dict(sdk_options) if sdk_options is not None else None),
            target=target,
            max_size=_parse_max_size(options.get("max_size")),
            max_size_encoding=options.get("max_size_encoding") or DEFAULT_MAX_SIZE_ENCODING,
            download=download)

    @classmethod
    def from_uri(
            cls, uri: str, download: Optional[DownloadOptions] = None) -> "TransferConfig":
        parsed_uri = urlparse(uri)
        if parsed_uri.scheme != "s3":
            raise InvalidTransferUri(f"Invalid transfer type '{parsed_uri.scheme}'")
        if parsed_uri.hostname is None:
            raise InvalidTransferUri("Missing hostname")

        query = parse_qs(parsed_uri.query)
        credentials = None

        if parsed_uri.username is not None:
            if parsed_uri.password is None:
                try:
                    credentials_data = json.loads(unquote(parsed_uri.username))
                except ValueError:
                    raise InvalidTransferUri("Invalid credentials")

                if not isinstance(credentials_data, dict):
                    raise InvalidTransferUri("Invalid credentials")
                if credentials_data.get("version") != 1:
                    raise InvalidTransferUri("Invalid credentials version")

                credentials = Credentials(
                    access_key_id=credentials_data.get("key_id"),
                    secret_access_key=credentials_data.get("access_secret"))
            else:
                credentials = Credentials(
                    access_key_id=unquote(parsed_uri.username),
                    secret_access_key=unquote(parsed_uri.password))

        max_size_encoding = _get_optional_query_parameter(query, "max_size_encoding")

        return cls(
            client=ClientConfig(
                credentials=credentials,
                region_name=_get_optional_query_parameter(query, "region"),
                endpoint_url=_get_optional_query_parameter(query, "endpoint_url")),
            target=ObjectTarget(
                bucket=parsed_uri.hostname, key=parsed_uri.path.replace("/", "", 1) or None),
            max_size=_parse_max_size(
                _get_optional_query_parameter(query, "max_size"), InvalidTransferUri),
            max_size_encoding=max_size_encoding or DEFAULT_MAX_SIZE_ENCODING,
            download=download)

    def get_sanitized_uri(self) -> str:
        return "s3://{}/{}".format(self.target.bucket or "", self.target.key or "")


def validate_options(config: Any) -> None:
    """Check that a transfer configuration names credentials and an object.

    Runs before any network or filesystem access.

    :raises: InvalidShape, MissingCredentials, MissingObjectTarget
    """
    if not isinstance(config, TransferConfig):
        raise InvalidShape("config must be a TransferConfig")
    if not isinstance(config.client, ClientConfig):
        raise InvalidShape("config.client must be a ClientConfig")

    credentials = config.client.credentials
    if credentials is None:
        raise MissingCredentials("config is required with a credentials object")
    if not credentials.access_key_id or not credentials.secret_access_key:
        raise MissingCredentials("missing aws credentials for secret or access key")

    target = config.target
    if not isinstance(target, ObjectTarget):
        raise InvalidShape("config.target must be an ObjectTarget")
    if not target.bucket or not target.key:
        raise MissingObjectTarget("missing S3 object parameters with bucket and key")

    try:
        codecs.lookup(config.max_size_encoding)
    except (LookupError, TypeError) as original_exc:
        raise InvalidShape(
            f"unknown max_size_encoding {config.max_size_encoding!r}") from original_exc
