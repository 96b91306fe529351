"""YAML config loader."""

import os
from dataclasses import dataclass, field
from typing import List

import yaml
from dotenv import load_dotenv

SEARCH_KEY_ENV = "ZENO_KEY"


@dataclass
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080
    idle_timeout: float = 0
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )


@dataclass
class DownloadConfig:
    timeout: float = 30
    connect_timeout: float = 10
    user_agent: str = "ZenoScraper/1.0"
    max_file_size: int = 104857600
    verify_tls: bool = True


@dataclass
class ExtractionConfig:
    pdftotext_cmd: str = "pdftotext"
    pdftotext_timeout: int = 120


@dataclass
class SearchConfig:
    binary: str = "meilisearch"
    data_path: str = "data.ms"
    http_addr: str = "127.0.0.1:7700"
    index_name: str = "sites"
    manage_process: bool = True
    warmup: float = 5.0
    probe_interval: float = 1.0
    probe_timeout: float = 0.1
    failure_threshold: int = 3
    request_timeout: float = 5.0
    master_key: str = ""

    @property
    def url(self) -> str:
        return f"http://{self.http_addr}"


@dataclass
class AppConfig:
    db_path: str = "zeno.db"
    log_dir: str = "logs"
    log_level: str = "INFO"
    server: ServerConfig = field(default_factory=ServerConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    search: SearchConfig = field(default_factory=SearchConfig)


def _section(cls, raw):
    return cls(**{k: v for k, v in (raw or {}).items() if k in cls.__dataclass_fields__})


def load_config(config_path: str = "config.yaml") -> AppConfig:
    load_dotenv()

    raw = {}
    if os.path.exists(config_path):
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

    search = _section(SearchConfig, raw.get("search"))
    # Environment wins over the file for the credential
    search.master_key = os.environ.get(SEARCH_KEY_ENV, search.master_key)

    return AppConfig(
        db_path=raw.get("db_path", "zeno.db"),
        log_dir=raw.get("log_dir", "logs"),
        log_level=str(raw.get("log_level", "INFO")).upper(),
        server=_section(ServerConfig, raw.get("server")),
        download=_section(DownloadConfig, raw.get("download")),
        extraction=_section(ExtractionConfig, raw.get("extraction")),
        search=search,
    )
