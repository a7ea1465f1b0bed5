import os
from urllib.parse import urlparse

import boto3
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError


class StorageError(Exception):
    """Raised when a file cannot be written to the studio bucket."""


def _client():
    return boto3.client(
        "s3",
        aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
        aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
        region_name=os.getenv("AWS_REGION"),
    )


def public_url(key, bucket_name):
    base_url = os.getenv("S3_BASE_URL") or f"https://{bucket_name}.s3.amazonaws.com"
    return f"{base_url.rstrip('/')}/{key}"


def upload_file_to_s3(file, key, bucket_name):
    """Stores a signature, logo or photo and returns its public URL."""
    content_type = getattr(file, "content_type", None) or "application/octet-stream"
    try:
        _client().upload_fileobj(
            file,
            bucket_name,
            key,
            ExtraArgs={"ACL": "public-read", "ContentType": content_type},
        )
    except NoCredentialsError:
        raise StorageError("Missing AWS credentials for the upload bucket")
    except (BotoCoreError, ClientError) as e:
        raise StorageError(f"Upload of {key} failed: {e}")
    return public_url(key, bucket_name)


def delete_file_from_s3(file_url, bucket_name):
    """Best effort; a stale object in the bucket is not worth failing the request for."""
    key = urlparse(file_url).path.lstrip("/")
    try:
        _client().delete_object(Bucket=bucket_name, Key=key)
    except (BotoCoreError, ClientError) as e:
        print(f"Could not delete {key} from S3: {e}")
        return False
    return True
