"""Application configuration."""

from pathlib import Path

from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Values can also come from a ``.env`` file or a ``staticwiki.yaml`` file in
    the working directory. Environment variables win over both files.
    """

    snapshot_source: str = "articles.json"
    about_path: Path | None = None
    app_title: str = "StaticWiki"
    debug: bool = False
    gate_taps: int = 10
    gate_reset_seconds: float = 2.5
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = SettingsConfigDict(
        env_prefix="STATICWIKI_",
        env_file=".env",
        env_file_encoding="utf-8",
        yaml_file="staticwiki.yaml",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
            file_secret_settings,
        )


settings = Settings()
