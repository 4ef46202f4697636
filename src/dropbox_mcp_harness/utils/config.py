"""
Configuration loader for the Dropbox MCP harness.

This module provides configuration management with:
- Multiple configuration sources (JSON, YAML, TOML and .env files, dicts)
- Environment variable overrides (DROPBOX_MCP_ prefix, "__" nesting)
- Schema validation through pydantic
- Configuration merging by priority
"""

import os
import json
import yaml
import toml
from pathlib import Path
from typing import Optional, Dict, Any, List, Union
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("dropbox-mcp-harness.config")

ENV_PREFIX = "DROPBOX_MCP_"
ENV_NESTING = "__"
ENV_PRIORITY = 50

DEFAULT_TEST_FILE_CONTENT = "Hello, this is a test file created by the Dropbox MCP test suite."


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ServerConfig(BaseModel):
    """How to launch the MCP server under test."""
    command: str = "node"
    args: List[str] = Field(default_factory=lambda: ["build/index.js"])
    cwd: Optional[Path] = None
    env: Dict[str, str] = Field(default_factory=dict)
    timeout: float = 60.0  # per call
    terminate_grace: float = 5.0

    @field_validator('args', mode='before')
    @classmethod
    def parse_args(cls, v):
        """Accept a whitespace separated string."""
        if isinstance(v, str):
            return v.split()
        return v

    @field_validator('timeout', 'terminate_grace')
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v


class CredentialsConfig(BaseModel):
    """Access token handling."""
    token_file: Path = Path("token")
    token_tool: str = "update_access_token"
    auth_markers: List[str] = Field(
        default_factory=lambda: ["invalid_access_token", "expired_access_token"]
    )
    max_auth_retries: int = 1

    @field_validator('auth_markers', mode='before')
    @classmethod
    def parse_markers(cls, v):
        if isinstance(v, str):
            return [m.strip() for m in v.split(",") if m.strip()]
        return v

    @field_validator('max_auth_retries')
    @classmethod
    def validate_retries(cls, v):
        if v < 0:
            raise ValueError("must not be negative")
        return v


class ScenarioConfig(BaseModel):
    """Names and content used by the end-to-end scenario."""
    folder: str = "/MCP Test Folder"
    file_name: str = "test_file.txt"
    file_content: str = DEFAULT_TEST_FILE_CONTENT
    copy_name: str = "test_file_copy.txt"
    renamed_name: str = "test_file_renamed.txt"
    search_query: str = "test_file"
    search_max_results: int = 10

    @field_validator('folder')
    @classmethod
    def validate_folder(cls, v):
        """Dropbox paths are absolute and carry no trailing slash."""
        v = v.rstrip("/")
        if not v.startswith("/"):
            v = "/" + v
        if v == "/":
            raise ValueError("scenario folder must not be the root folder")
        return v

    @property
    def file_path(self) -> str:
        return f"{self.folder}/{self.file_name}"

    @property
    def copy_path(self) -> str:
        return f"{self.folder}/{self.copy_name}"

    @property
    def renamed_path(self) -> str:
        return f"{self.folder}/{self.renamed_name}"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "WARNING"
    json_format: bool = False
    directory: Optional[Path] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class ReportConfig(BaseModel):
    """Where to write the JSON run report."""
    path: Optional[Path] = None


class HarnessConfig(BaseModel):
    """Main harness configuration."""
    app_name: str = "dropbox-mcp-harness"

    server: ServerConfig = Field(default_factory=ServerConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)
    scenario: ScenarioConfig = Field(default_factory=ScenarioConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    report: ReportConfig = Field(default_factory=ReportConfig)

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        validate_assignment=True
    )


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        self._sources: List[ConfigSource] = []
        self._environ = environ if environ is not None else os.environ

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)

            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

    def _detect_source_type(self, path: Path) -> str:
        """Detect configuration file type."""
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        elif suffix == ".env" or path.name == ".env":
            return "env"
        else:
            raise ConfigurationError(f"Unknown config file type: {path.name}")

    async def load(self) -> HarnessConfig:
        """
        Load configuration from all sources.

        Sources are applied lowest priority first so higher priorities win.
        Environment variables sit at ENV_PRIORITY: above config files,
        below explicit overrides.
        """
        layers = [(source.priority, self._load_source(source)) for source in self._sources]
        layers.append((ENV_PRIORITY, self._load_env_vars()))

        merged_data: Dict[str, Any] = {}
        for _, data in sorted(layers, key=lambda layer: layer[0]):
            merged_data = self._deep_merge(merged_data, data)

        try:
            config = HarnessConfig(**merged_data)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                errors.append(f"{field}: {error['msg']}")

            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}"
            ) from e

        logger.debug("configuration_loaded", sources=len(self._sources))
        return config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        """Load data from a configuration source."""
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        content = source.path.read_text(encoding="utf-8")

        try:
            if source.source_type == "json":
                data = json.loads(content)
            elif source.source_type == "yaml":
                data = yaml.safe_load(content) or {}
            elif source.source_type == "toml":
                data = toml.loads(content)
            elif source.source_type == "env":
                data = self._parse_env_file(content)
            else:
                raise ConfigurationError(f"Unknown source type: {source.source_type}")
        except (json.JSONDecodeError, yaml.YAMLError, toml.TomlDecodeError) as e:
            raise ConfigurationError(f"Cannot parse {source.path}: {e}", cause=e) from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{source.path} must contain a mapping at the top level")
        return data

    def _parse_env_file(self, content: str) -> Dict[str, Any]:
        """Parse .env file format; only DROPBOX_MCP_ keys are used."""
        pairs = {}

        for line in content.splitlines():
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if line.startswith("export "):
                line = line[len("export "):]

            if "=" in line:
                key, value = line.split("=", 1)
                pairs[key.strip()] = value.strip().strip('"').strip("'")

        return self._nest(pairs)

    def _load_env_vars(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        return self._nest(self._environ)

    def _nest(self, pairs) -> Dict[str, Any]:
        result: Dict[str, Any] = {}

        for key, value in pairs.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split(ENV_NESTING)
            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})

            current[parts[-1]] = self._convert_value(value)

        return result

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        if value.startswith("[") or value.startswith("{"):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


DEFAULT_CONFIG_PATHS = [
    Path("./.env"),
    Path("./dropbox-mcp-harness.toml"),
    Path("./dropbox-mcp-harness.json"),
    Path("./dropbox-mcp-harness.yaml"),
]


async def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> HarnessConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Extra configuration to merge (command line overrides)
        environ: Environment mapping, os.environ by default

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader(environ=environ)

    for path in DEFAULT_CONFIG_PATHS:
        if path.exists():
            loader.add_source(path, priority=10)

    if config_paths:
        for i, path in enumerate(config_paths):
            if not Path(path).exists():
                raise ConfigurationError(f"Config file not found: {path}")
            loader.add_source(path, priority=20 + i)

    if extra_config:
        loader.add_source(extra_config, priority=100)

    return await loader.load()


__all__ = [
    'HarnessConfig',
    'ServerConfig',
    'CredentialsConfig',
    'ScenarioConfig',
    'LoggingConfig',
    'ReportConfig',
    'ConfigLoader',
    'load_config',
    'DEFAULT_TEST_FILE_CONTENT',
]
