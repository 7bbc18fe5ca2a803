# visaforge/services/storage_service.py

from typing import Optional

import boto3
from botocore.exceptions import ClientError

from visaforge.core.config import settings
from visaforge.core.logger import logger


class StorageService:
    """
    Private object storage for evidence files and generated packets.
    Objects are only ever handed out through presigned GET URLs.
    """

    def __init__(self, client=None):
        self._client = client

    @property
    def s3_client(self):
        if self._client is None:
            kwargs = {"region_name": settings.AWS_REGION}
            if settings.S3_ENDPOINT_URL:
                kwargs["endpoint_url"] = settings.S3_ENDPOINT_URL
            if settings.AWS_ACCESS_KEY_ID and settings.AWS_SECRET_ACCESS_KEY:
                kwargs["aws_access_key_id"] = settings.AWS_ACCESS_KEY_ID
                kwargs["aws_secret_access_key"] = settings.AWS_SECRET_ACCESS_KEY
            self._client = boto3.client("s3", **kwargs)
        return self._client

    def upload_bytes(
        self,
        bucket: str,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
    ) -> str:
        """
        Upload raw bytes. Never overwrites in practice: callers put a
        millisecond timestamp in every key.
        """
        try:
            self.s3_client.put_object(Bucket=bucket, Key=key, Body=data, ContentType=content_type)
            logger.info(f"Uploaded {len(data)} bytes to {bucket}/{key}")
            return key
        except ClientError as e:
            logger.error(f"Failed to upload {bucket}/{key}: {str(e)}")
            raise

    def generate_download_url(
        self,
        bucket: str,
        key: str,
        expires_in: Optional[int] = None,
    ) -> str:
        """
        Generate pre-signed URL for GET operation (download).
        """
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in or settings.SIGNED_URL_TTL_SECONDS,
            )
        except ClientError as e:
            logger.error(f"Failed to generate download URL: {str(e)}")
            raise


storage_service = StorageService()
