"""
S3 client for complaint photo storage.
"""
import boto3
from botocore.exceptions import ClientError, BotoCoreError
from typing import Optional, BinaryIO

from core.logger import logger


class S3Client:
    """S3 client for storing and retrieving files in a single bucket."""

    def __init__(
        self,
        bucket_name: str,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None,
        region_name: str = "us-east-1",
        endpoint_url: Optional[str] = None,  # For S3-compatible services (MinIO, etc.)
        auto_create_bucket: bool = True
    ):
        """
        Initialize S3 client.

        Args:
            bucket_name: Bucket holding all uploads
            aws_access_key_id: AWS access key (or from env)
            aws_secret_access_key: AWS secret key (or from env)
            region_name: AWS region
            endpoint_url: Custom endpoint URL (for MinIO, etc.)
            auto_create_bucket: Create the bucket if it doesn't exist
        """
        self.bucket_name = bucket_name
        self.region_name = region_name
        self.auto_create_bucket = auto_create_bucket

        client_kwargs = {
            "region_name": region_name
        }
        if aws_access_key_id:
            client_kwargs["aws_access_key_id"] = aws_access_key_id
        if aws_secret_access_key:
            client_kwargs["aws_secret_access_key"] = aws_secret_access_key
        if endpoint_url:
            client_kwargs["endpoint_url"] = endpoint_url

        self.s3_client = boto3.client("s3", **client_kwargs)
        self._ensure_bucket_exists()
        logger.info(f"S3 client initialized (bucket: {bucket_name})")

    def _ensure_bucket_exists(self):
        """Ensure bucket exists, create if it doesn't."""
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            logger.debug(f"Bucket {self.bucket_name} exists")
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "")
            if error_code not in ("404", "403", "NoSuchBucket") or not self.auto_create_bucket:
                logger.error(f"Error checking bucket {self.bucket_name}: {e}")
                raise
            if self.region_name == "us-east-1":
                self.s3_client.create_bucket(Bucket=self.bucket_name)
            else:
                self.s3_client.create_bucket(
                    Bucket=self.bucket_name,
                    CreateBucketConfiguration={"LocationConstraint": self.region_name}
                )
            logger.info(f"Created bucket: {self.bucket_name}")

    def upload_fileobj(
        self,
        file_obj: BinaryIO,
        key: str,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Upload a file-like object.

        Returns:
            s3:// reference of the uploaded object
        """
        extra_args = {}
        if content_type:
            extra_args["ContentType"] = content_type
        try:
            self.s3_client.upload_fileobj(file_obj, self.bucket_name, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            logger.error(f"Failed to upload file object to S3: {e}")
            raise
        url = f"s3://{self.bucket_name}/{key}"
        logger.info(f"Uploaded file object to S3: {url}")
        return url

    def get_presigned_url(self, reference: str, expires_in: int = 3600) -> Optional[str]:
        """
        Turn an s3:// reference or bare key into a presigned HTTPS URL.

        Returns None if the reference is empty or signing fails.
        """
        reference = (reference or "").strip()
        if reference.startswith("s3://"):
            bucket, _, key = reference[len("s3://"):].partition("/")
        else:
            bucket, key = self.bucket_name, reference
        if not key:
            return None
        try:
            return self.s3_client.generate_presigned_url(
                "get_object",
                Params={"Bucket": bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (ClientError, BotoCoreError) as e:
            logger.warning(f"Failed to generate presigned URL for {reference}: {e}")
            return None
