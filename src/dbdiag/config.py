from typing import Dict, List, Optional
from pathlib import Path
import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import BaseModel, Field, ValidationError, model_validator
from .domain.models import EngineKind, Target, TrustMode
from .exceptions import ConfigurationError


class TargetConfig(BaseModel):
    """One entry under `databases:`; the mapping key is the target id."""
    type: str
    host: str = ""
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    user: str = ""
    password: str = ""  # base64 ciphertext produced by `dbdiag encrypt`
    name: str = ""
    health_query: Optional[str] = None
    tls_mode: Optional[str] = None
    # Legacy boolean from the original config format
    tls: Optional[bool] = None
    root_cert_path: Optional[str] = None
    client_cert_path: Optional[str] = None
    client_key_path: Optional[str] = None
    wallet_path: Optional[str] = None

    @model_validator(mode="after")
    def _map_legacy_tls(self) -> "TargetConfig":
        if self.tls_mode is None and self.tls:
            self.tls_mode = TrustMode.REQUIRE.value
        return self

    def to_target(self, target_id: str) -> Target:
        data = self.model_dump(exclude={"tls"})
        if data["health_query"] is not None and not data["health_query"].strip():
            data["health_query"] = None
        return Target(id=target_id, **data)


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DBDIAG_")

    databases: Dict[str, TargetConfig] = {}
    timeout_seconds: float = Field(default=10.0, gt=0)
    max_workers: int = Field(default=8, ge=1)
    key_file: Optional[Path] = None
    # base64; deobfuscated with the resolved key (legacy installations only)
    legacy_obfuscated_key: Optional[str] = None

    # Oracle Specific Options
    oracle_thick_mode: bool = False
    oracle_lib_dir: Optional[str] = None

    @classmethod
    def from_yaml(cls, config_path: Path) -> "AppConfig":
        if not config_path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            with open(config_path, "r") as f:
                raw_config = yaml.safe_load(f) or {}
            if not isinstance(raw_config, dict):
                raise ConfigurationError(f"Config root must be a mapping: {config_path}")
            return cls(**raw_config)
        except (ValidationError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid configuration format: {e}")
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {config_path}: {e}")

    def get_target(self, target_id: str) -> Target:
        try:
            return self.databases[target_id].to_target(target_id)
        except KeyError:
            raise ConfigurationError(f"Database with ID '{target_id}' not found in config") from None

    def targets(self) -> List[Target]:
        return [cfg.to_target(target_id) for target_id, cfg in self.databases.items()]

    def validate_targets(self) -> List[str]:
        """Strict pre-flight: problems with types and TLS modes, one message each."""
        kinds = {k.value for k in EngineKind}
        modes = {m.value for m in TrustMode} | {""}
        problems = []
        for target_id, cfg in self.databases.items():
            if cfg.type not in kinds:
                problems.append(f"database '{target_id}' has unsupported type: {cfg.type}")
            if cfg.tls_mode is not None and cfg.tls_mode not in modes:
                problems.append(f"database '{target_id}' has unsupported tls_mode: {cfg.tls_mode}")
            if bool(cfg.client_cert_path) != bool(cfg.client_key_path):
                problems.append(
                    f"database '{target_id}' must set both client_cert_path and client_key_path or neither"
                )
        return problems
