import boto3.session
import botocore.config
from botocore.session import Session

from s3_download.transfer_config import ClientConfig, Credentials


def create_client(client_config: ClientConfig) -> Session:
    """Construct an S3 client from the caller's configuration.

    No requests are made here; errors from the SDK are left to propagate.
    """
    credentials = client_config.credentials or Credentials(None, None)

    aws_session = boto3.session.Session(
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        aws_session_token=credentials.session_token,
        region_name=client_config.region_name)

    config = None
    if client_config.options:
        config = botocore.config.Config(**client_config.options)

    return aws_session.client("s3", endpoint_url=client_config.endpoint_url, config=config)
