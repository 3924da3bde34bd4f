"""Konfigurationsmodul für das Counsellor Gateway: lädt Upstream-Endpunkt,
Ports und Betriebsparameter via Pydantic-Settings aus der Umgebung."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Verzeichnis mit den Assets des Web-Clients (index.html, main.js, style.css).
STATIC_DIR = Path(__file__).resolve().parent.parent / "static"


class Settings(BaseSettings):
    """Hält alle Werte, die das Gateway beim Start benötigt. Die Instanz wird
    explizit an ``create_app`` übergeben und danach nicht mehr verändert."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    upstream_host: str = "localhost"
    upstream_port: int = 5000  # Port des Counsellor-API-Service.
    upstream_protocol: Literal["http", "https"] = "http"
    upstream_timeout: float = 30.0

    service_host: str = "0.0.0.0"
    service_port: int = 3000
    static_dir: Path = STATIC_DIR

    app_env: str = "development"
    log_file: str = "gateway.log"  # Leer = nur Konsole.
    shutdown_timeout: float = 5.0

    # "upstream": Upstream vergibt die ID, Gateway ergänzt nur falls sie fehlt.
    # "gateway": Gateway erzeugt die ID immer selbst.
    conversation_id_policy: Literal["upstream", "gateway"] = "upstream"

    @property
    def upstream_base_url(self) -> str:
        return f"{self.upstream_protocol}://{self.upstream_host}:{self.upstream_port}"

    @property
    def is_development(self) -> bool:
        return self.app_env.lower() in {"dev", "development", "local"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
