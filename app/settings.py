from pydantic_settings import BaseSettings
from pydantic import Field
from typing import Optional

class Settings(BaseSettings):
    port: int = Field(8080)

    # Storage provider: all three are required for the data-bearing endpoints
    aws_access_key_id: Optional[str] = Field(None)
    aws_secret_access_key: Optional[str] = Field(None)
    s3_bucket: Optional[str] = Field(None)

    aws_region: str = Field("us-east-1")
    aws_endpoint_url: Optional[str] = Field(None)
    dynamodb_table: str = Field("Photos")
    presign_expire_seconds: int = Field(3600)
    cdn_base_url: Optional[str] = Field(None)

    photo_folder: str = Field("graduation_photo_wall")
    max_files_per_upload: int = Field(5)
    max_file_mb: int = Field(10)
    photo_wall_pin: str = Field("")
    upload_concurrency: int = Field(1, ge=1)

    subscriber_buffer_size: int = Field(32, ge=1)
    stream_keepalive_seconds: float = Field(15.0, gt=0)

    app_title: str = Field("Photo Wall")

    class Config:
        env_file = ".env"
        extra = "allow"  # tolerate unknown vars if needed

    @property
    def storage_configured(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key and self.s3_bucket)

    @property
    def max_file_bytes(self) -> int:
        return self.max_file_mb * 1024 * 1024

settings = Settings()
