# src/config.py
"""패널 설정 로더. YAML 파일(선택)을 읽은 뒤 환경 변수로 덮어씁니다."""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

STORAGE_BACKENDS = ("sqlalchemy", "memory")
CONFIG_PATH_ENV = "VPS_PANEL_CONFIG"


@dataclass(frozen=True)
class ResourceDefaults:
    cpu: str = "2 cores"
    ram: str = "2GB"
    disk: str = "20GB SSD"


@dataclass(frozen=True)
class PanelConfig:
    database_url: str = "sqlite:///vps_panel.db"
    storage_backend: str = "sqlalchemy"
    host: str = ""
    port: int = 8000
    token_ttl_minutes: int = 60
    deploy_delay_seconds: float = 3.0
    restart_delay_seconds: float = 2.0
    default_image: str = "ubuntu:22.04"
    default_resources: ResourceDefaults = ResourceDefaults()
    default_working_directory: str = "/root"
    demo_auto_register: bool = False
    seed_demo_users: bool = True
    admin_username: str = "admin"
    admin_password: str = "admin"
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PanelConfig":
        resources = data.get("default_resources", {}) or {}
        config = cls(
            database_url=data.get("database_url", "sqlite:///vps_panel.db"),
            storage_backend=data.get("storage_backend", "sqlalchemy"),
            host=data.get("host", ""),
            port=int(data.get("port", 8000)),
            token_ttl_minutes=int(data.get("token_ttl_minutes", 60)),
            deploy_delay_seconds=float(data.get("deploy_delay_seconds", 3.0)),
            restart_delay_seconds=float(data.get("restart_delay_seconds", 2.0)),
            default_image=data.get("default_image", "ubuntu:22.04"),
            default_resources=ResourceDefaults(
                cpu=resources.get("cpu", "2 cores"),
                ram=resources.get("ram", "2GB"),
                disk=resources.get("disk", "20GB SSD"),
            ),
            default_working_directory=data.get("default_working_directory", "/root"),
            demo_auto_register=_to_bool(data.get("demo_auto_register", False)),
            seed_demo_users=_to_bool(data.get("seed_demo_users", True)),
            admin_username=data.get("admin_username", "admin"),
            admin_password=data.get("admin_password", "admin"),
            log_level=str(data.get("log_level", "INFO")).upper(),
        )
        config.validate()
        return config

    def validate(self):
        if self.storage_backend not in STORAGE_BACKENDS:
            raise ValueError(
                f"Unknown storage backend '{self.storage_backend}'. Expected one of {STORAGE_BACKENDS}."
            )
        if self.deploy_delay_seconds < 0 or self.restart_delay_seconds < 0:
            raise ValueError("Transition delays must not be negative.")
        if self.token_ttl_minutes <= 0:
            raise ValueError("token_ttl_minutes must be positive.")


ENV_MAP = {
    "database_url": "VPS_PANEL_DATABASE_URL",
    "storage_backend": "VPS_PANEL_STORAGE_BACKEND",
    "host": "VPS_PANEL_HOST",
    "port": "VPS_PANEL_PORT",
    "token_ttl_minutes": "VPS_PANEL_TOKEN_TTL_MINUTES",
    "deploy_delay_seconds": "VPS_PANEL_DEPLOY_DELAY",
    "restart_delay_seconds": "VPS_PANEL_RESTART_DELAY",
    "log_level": "VPS_PANEL_LOG_LEVEL",
    "demo_auto_register": "VPS_PANEL_DEMO_AUTO_REGISTER",
    "seed_demo_users": "VPS_PANEL_SEED_DEMO_USERS",
}


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(config_data)
    for key, env_name in ENV_MAP.items():
        if env_name in os.environ:
            merged[key] = os.environ[env_name]
    return merged


def load_config(config_path: Optional[Union[str, Path]] = None) -> PanelConfig:
    """
    설정을 로드합니다. 경로가 없으면 VPS_PANEL_CONFIG 환경 변수를, 그것도 없으면 기본값만 사용합니다.

    Raises:
        FileNotFoundError: 명시된 설정 파일이 존재하지 않을 때.
        ValueError: 설정 값이 유효하지 않을 때.
    """
    config_path = config_path or os.environ.get(CONFIG_PATH_ENV)
    data: Dict[str, Any] = {}
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = load_yaml(path)
    return PanelConfig.from_dict(merge_env_overrides(data))
