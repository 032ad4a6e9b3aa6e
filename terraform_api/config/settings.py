import os
import tempfile
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Terraform
    terraform_path: str = "./terraform"  # source directory holding the template files
    terraform_binary: str = "terraform"
    template_files: str = "ec2-web-app.tf,terraform.tfvars,.terraform.lock.hcl"
    workspace_root: Optional[str] = None  # defaults to <tempdir>/terraform_temp
    command_timeout_seconds: float = 1800.0  # 30 minutes
    process_kill_grace_seconds: float = 3.0

    # Temporary buckets
    temp_bucket_prefix: str = "terraform-temp-"
    bucket_name_variable: str = "bucket_name"  # exported to terraform as TF_VAR_<name>

    # AWS S3 (will read from uppercase env vars automatically)
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: str = "us-east-1"
    s3_endpoint_url: Optional[str] = None
    s3_connect_timeout: float = 10.0
    s3_read_timeout: float = 60.0
    s3_max_attempts: int = 3

    # App
    app_name: str = "Terraform API Server"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    port: int = 3000
    cors_origins: str = "*"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_template_files_list(self) -> List[str]:
        return [f.strip() for f in self.template_files.split(",") if f.strip()]

    def get_workspace_root(self) -> str:
        return self.workspace_root or os.path.join(tempfile.gettempdir(), "terraform_temp")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
