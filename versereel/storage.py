"""
S3-compatible object storage for progress state and finished videos.

Works with AWS S3 or any S3-compatible service (Cloudflare R2, Backblaze B2).

Environment variables (in .env):
    S3_BUCKET_NAME        - Bucket holding state and videos
    AWS_REGION            - Region (default: us-east-1)
    STORAGE_ENDPOINT_URL  - Optional custom endpoint for non-AWS providers
    AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY
                          - Picked up by boto3's default credential chain
"""

import json
import os
from pathlib import Path

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv
from rich.console import Console

from versereel.errors import StorageError

load_dotenv()
console = Console()

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class ObjectStore:
    """Get/put objects by key in a single bucket."""

    def __init__(self, bucket: str, client=None, region: str | None = None, endpoint_url: str | None = None):
        if not bucket:
            raise EnvironmentError("S3_BUCKET_NAME is required. Set it in your .env file.")
        self.bucket = bucket
        self.client = client or boto3.client(
            "s3",
            region_name=region or "us-east-1",
            endpoint_url=endpoint_url or None,
            config=BotoConfig(
                signature_version="s3v4",
                retries={"max_attempts": 3, "mode": "adaptive"},
            ),
        )

    @classmethod
    def from_env(cls, config: dict | None = None) -> "ObjectStore":
        config = config or {}
        return cls(
            bucket=os.getenv("S3_BUCKET_NAME") or config.get("bucket", ""),
            region=os.getenv("AWS_REGION") or config.get("region"),
            endpoint_url=os.getenv("STORAGE_ENDPOINT_URL") or config.get("endpoint_url"),
        )

    def get_json(self, key: str) -> dict | None:
        """Fetch and decode a JSON object. Returns None when the key does not exist."""
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"].read()
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_KEY_CODES:
                return None
            raise StorageError(f"get {key}: {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"get {key}: {e}") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise StorageError(f"{key} is not valid JSON: {e}") from e

    def put_json(self, key: str, data: dict) -> None:
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=json.dumps(data, indent=2).encode("utf-8"),
                ContentType="application/json",
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"put {key}: {e}") from e

    def upload_file(self, local_path: Path, key: str, content_type: str = "video/mp4") -> str:
        """Upload a local file. Returns the ``s3://`` URI of the stored object."""
        local_path = Path(local_path)
        if not local_path.exists():
            raise FileNotFoundError(f"File not found: {local_path}")

        file_size_mb = local_path.stat().st_size / (1024 * 1024)
        console.print(
            f"[cyan]Uploading {local_path.name} "
            f"({file_size_mb:.1f} MB) to {self.bucket}/{key}[/cyan]"
        )
        try:
            self.client.upload_file(
                str(local_path),
                self.bucket,
                key,
                ExtraArgs={"ContentType": content_type},
            )
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"upload {key}: {e}") from e

        uri = f"s3://{self.bucket}/{key}"
        console.print(f"[green]Uploaded: {uri}[/green]")
        return uri

    def test_connection(self) -> bool:
        """Raises on failure."""
        console.print(f"[cyan]Testing connection to bucket '{self.bucket}'...[/cyan]")
        self.client.head_bucket(Bucket=self.bucket)
        console.print(f"[green]Storage connection OK ({self.bucket})[/green]")
        return True
