import boto3
from typing import Optional
from urllib.parse import quote, urlencode
from botocore.exceptions import ClientError
from app.settings import Settings
import logging

log = logging.getLogger(__name__)

# -------------------------
# S3 Service
# -------------------------
class S3Service:
    def __init__(self, settings: Settings):
        self.settings = settings
        self.bucket = settings.s3_bucket
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.client = session.client("s3", **kwargs)
        log.info("Initialized S3 client")

        # Ensure bucket exists at initialization
        self.ensure_bucket()

    def ensure_bucket(self):
        try:
            self.client.head_bucket(Bucket=self.bucket)
            log.debug("Bucket %s already exists", self.bucket)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in ("404", "NoSuchBucket"):
                self.client.create_bucket(Bucket=self.bucket)
                log.info("Created bucket %s", self.bucket)
            else:
                log.error("Failed to check/create bucket: %s", e)
                raise

    def upload(self, fileobj, key: str, content_type: str):
        self.client.upload_fileobj(
            Fileobj=fileobj,
            Bucket=self.bucket,
            Key=key,
            ExtraArgs={"ContentType": content_type},
        )
        log.debug("Uploaded %s to s3://%s/%s", key, self.bucket, key)

    def generate_presigned_url(self, key: str) -> str:
        """Signs a GET URL locally; no request is made to S3."""
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=self.settings.presign_expire_seconds,
        )

    def public_url(self, key: str, params: Optional[dict] = None) -> str:
        """URL of the object behind the configured CDN, with transformation params."""
        url = f"{self.settings.cdn_base_url.rstrip('/')}/{quote(key)}"
        if params:
            url = f"{url}?{urlencode(params)}"
        return url

    def close(self):
        log.info("Closed S3 client")
