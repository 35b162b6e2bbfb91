"""S3 object storage for scene videos, continuity frames and final movies.

Keys come from moviegen.services.continuity and are stored exactly as given.
"""

import io
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from moviegen.config import get_settings
from moviegen.core.exceptions import MediaProcessingError


def _client():
    settings = get_settings()
    kwargs = {
        "region_name": settings.s3_region,
        "aws_access_key_id": settings.aws_access_key_id or None,
        "aws_secret_access_key": settings.aws_secret_access_key or None,
        "config": Config(signature_version="s3v4"),
    }
    if settings.s3_endpoint_url:
        kwargs["endpoint_url"] = settings.s3_endpoint_url
    else:
        # Regional endpoint: presigned URLs on the global one 307-redirect and lose the signature.
        kwargs["endpoint_url"] = f"https://s3.{settings.s3_region}.amazonaws.com"
    return boto3.client("s3", **kwargs)


def public_url(key: str, bucket: Optional[str] = None) -> str:
    settings = get_settings()
    bucket = bucket or settings.s3_bucket
    if settings.s3_public_base_url:
        return f"{settings.s3_public_base_url.rstrip('/')}/{key}"
    if settings.s3_endpoint_url:
        return f"{settings.s3_endpoint_url.rstrip('/')}/{bucket}/{key}"
    return f"https://{bucket}.s3.{settings.s3_region}.amazonaws.com/{key}"


class ObjectStorage:
    """put(key, bytes) -> url over S3."""

    def __init__(self, bucket: Optional[str] = None):
        self.bucket = bucket or get_settings().s3_bucket
        self._s3 = None

    @property
    def s3(self):
        if self._s3 is None:
            self._s3 = _client()
        return self._s3

    def put(self, key: str, data: bytes, content_type: str) -> str:
        try:
            self.s3.upload_fileobj(
                io.BytesIO(data),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (BotoCoreError, ClientError) as e:
            raise MediaProcessingError(f"S3 upload of {key} failed: {e}") from e
        return public_url(key, bucket=self.bucket)
