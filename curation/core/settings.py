"""Définition et chargement des paramètres de configuration du pipeline d'ingestion.

Objectif du module
------------------
- Centraliser les paramètres (env/.env) via Pydantic Settings
- Résoudre le fichier `.env` à utiliser selon la stratégie: ENV_FILE > .env.{APP_ENV} > .env
- Dériver la configuration explicite `PipelineConfig` injectée dans l'acteur et l'orchestrateur
"""

import os
from dataclasses import dataclass
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Détermination du fichier .env à utiliser avec priorité:
# 1) ENV_FILE (chemin explicite)
# 2) .env.{APP_ENV} si présent
# 3) .env (défaut)
_cwd = Path.cwd()
_env_file_from_env = os.getenv("ENV_FILE")
if _env_file_from_env:
    _ENV_FILE_PATH = _env_file_from_env
else:
    _app_env = os.getenv("APP_ENV", "dev")
    _candidate_specific = _cwd / f".env.{_app_env}"
    _candidate_default = _cwd / ".env"
    if _candidate_specific.exists():
        _ENV_FILE_PATH = _candidate_specific
    else:
        _ENV_FILE_PATH = _candidate_default


class Settings(BaseSettings):
    """Modèle de configuration chargé depuis l'environnement et .env."""

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE_PATH,
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        case_sensitive=False,
    )
    APP_NAME: str = "curation-ingest"
    APP_ENV: str = "dev"
    APP_DEBUG: bool = True

    # Stockage
    WORKING_PATH: str = "tmp/working"
    BINARY_STORE_PATH: str = "tmp/binaries"
    DATABASE_URL: str | None = None
    REDIS_URL: str | None = None
    REQUIRE_REDIS: bool = False

    # Index de recherche (Solr); vide => index en mémoire
    SEARCH_INDEX_URL: str | None = None
    SEARCH_INDEX_TIMEOUT: float = 5.0

    # Celery
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/1"
    INGEST_QUEUE_NAME: str = "ingest"

    # Dérivés
    ENABLE_TRANSCODE: bool = False
    FFMPEG_PATH: str = "ffmpeg"
    THUMBNAIL_SIZE: int = 338

    # Observabilité
    OTLP_ENDPOINT: str | None = None
    LOG_LEVEL: str = "INFO"
    DLQ_LIST: str = "ingest:dlq"
    METRICS_HOST: str = "0.0.0.0"
    METRICS_PORT: int = 9109
    METRICS_ALLOWLIST: str = "127.0.0.1,::1"
    METRICS_TRUST_FORWARDED: bool = False


@dataclass(frozen=True)
class PipelineConfig:
    """Configuration explicite passée à l'acteur et à l'orchestrateur.

    Remplace la lecture d'une configuration globale: les tests peuvent
    construire leur propre instance par exécution.
    """

    ingest_queue_name: str = "ingest"
    enable_transcode: bool = False
    thumbnail_size: int = 338
    ffmpeg_path: str = "ffmpeg"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        """Construit la configuration pipeline depuis les `Settings`."""
        return cls(
            ingest_queue_name=settings.INGEST_QUEUE_NAME,
            enable_transcode=settings.ENABLE_TRANSCODE,
            thumbnail_size=settings.THUMBNAIL_SIZE,
            ffmpeg_path=settings.FFMPEG_PATH,
        )


def get_settings() -> Settings:
    """Construit et retourne la configuration de l'application."""
    return Settings()
