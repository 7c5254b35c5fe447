from typing import Optional
from urllib.parse import quote_plus

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    """Database configuration"""

    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: SecretStr = Field(default=SecretStr("postgres"))
    database: str = "rretoriq_practice"
    search_schema: Optional[str] = None
    serverless: bool = Field(
        default=True,
        description="If true, disable connection pooling so serverless DBs can pause.",
    )

    @property
    def url(self) -> str:
        """Get database URL"""
        username = quote_plus(self.username)
        password = quote_plus(self.password.get_secret_value())
        return (
            "postgresql+asyncpg://"
            f"{username}:{password}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    model_config = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class S3Config(BaseSettings):
    """S3 configuration for optional recording archival."""

    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    region: str = "us-east-1"
    bucket_name: str = "rretoriq-recordings"
    archive_recordings: bool = False

    model_config = SettingsConfigDict(
        env_prefix="S3_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class RecorderConfig(BaseSettings):
    """Microphone capture and waveform defaults."""

    max_duration_seconds: int = Field(default=300, ge=1)
    auto_stop: bool = True
    sample_rate: int = 48000
    channels: int = Field(default=1, ge=1, le=2)
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True
    waveform_width: int = 600
    waveform_bar_width: int = 4
    waveform_bar_gap: int = 2
    waveform_fps: int = Field(default=60, ge=1)
    waveform_gain: float = 4.0

    model_config = SettingsConfigDict(
        env_prefix="RECORDER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class TranscriptionConfig(BaseSettings):
    """Remote speech-to-text (Whisper-compatible) configuration."""

    base_url: str = "https://api.openai.com/v1"
    api_key: SecretStr | None = None
    model: str = "whisper-1"
    language: str = "en"
    temperature: float = Field(default=0.2, ge=0.0, le=1.0)
    response_format: str = "verbose_json"
    max_upload_bytes: int = 25 * 1024 * 1024
    timeout_seconds: float = Field(default=120.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="WHISPER_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class AnalysisConfig(BaseSettings):
    """Remote answer-scoring (Gemini proxy) configuration."""

    endpoint: str = "http://localhost:3000/api/gemini-proxy"
    api_key: SecretStr | None = None
    model: str = "gemini-2.0-flash"
    timeout_seconds: float = Field(default=60.0, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        env_file=".env",
        secrets_dir=".secrets",
        case_sensitive=False,
        extra="ignore",
    )


class SecurityConfig(BaseSettings):
    """JWT and application security configuration."""

    jwt_secret_key: SecretStr = Field(
        default=SecretStr("change-me"),
        validation_alias="JWT_SECRET",
    )
    jwt_algorithm: str = Field(default="HS256", validation_alias="JWT_ALGORITHM")
    access_token_expires_minutes: int = Field(
        default=60,
        validation_alias="JWT_EXPIRATION_MINUTES",
        ge=1,
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


class Settings(BaseSettings):
    """Application settings"""

    app_name: str = "Rretoriq Practice Backend"
    app_version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_file: str = "logs/app.log"
    pipeline_log_file: str = "logs/answer_pipeline.log"
    transcript_log_file: str = "logs/transcripts.log"
    document_store: str = Field(
        default="database",
        description="Either 'database' (PostgreSQL) or 'memory'.",
    )

    # Database
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # S3
    s3: S3Config = Field(default_factory=S3Config)

    # Capture
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)

    # Remote AI services
    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)

    # Security
    security: SecurityConfig = Field(default_factory=SecurityConfig)

    # CORS
    cors_origins: list[str] = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list[str] = ["*"]
    cors_allow_headers: list[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
