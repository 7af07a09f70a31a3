"""S3 repository for payment screenshots."""

from typing import Optional
from urllib.parse import unquote

import boto3


class S3Repository:
    """Minimal helper around S3 for uploads, downloads and presigned links."""

    def __init__(self, bucket_name: str, region: Optional[str] = None, client=None):
        self.bucket_name = bucket_name
        self.client = client or boto3.client("s3", region_name=region)

    def upload_bytes(self, key: str, content: bytes, content_type: str) -> None:
        """Upload a private object."""
        self.client.put_object(
            Bucket=self.bucket_name,
            Key=key,
            Body=content,
            ContentType=content_type,
        )

    def get_bytes(self, key: str) -> bytes:
        response = self.client.get_object(Bucket=self.bucket_name, Key=key)
        return response["Body"].read()

    def presigned_url(self, key: str, expires_in: int) -> str:
        """Time-limited GET link so the frontend and validator can read the file."""
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket_name, "Key": key},
            ExpiresIn=expires_in,
        )

    def owns_url(self, url: str) -> Optional[str]:
        """Return the object key if ``url`` points into this bucket, else None."""
        prefix = f"s3://{self.bucket_name}/"
        if url.startswith(prefix):
            return url[len(prefix):]
        for host in (
            f"https://{self.bucket_name}.s3.amazonaws.com/",
            f"https://{self.bucket_name}.s3.{self.client.meta.region_name}.amazonaws.com/",
        ):
            if url.startswith(host):
                return unquote(url[len(host):].split("?", 1)[0])
        return None
