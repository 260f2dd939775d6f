"""
Configuration File Support for SSHScan.

Provides TOML-based configuration management:
- Default config location (~/.sshscan/config.toml)
- Project-level config (.sshscan.toml)
- Environment variable overrides
- Config validation and error messages
- Config generation and display commands

by BitSpectreLabs
"""

import os
import tomllib
from pathlib import Path
from dataclasses import dataclass, field, asdict
from typing import Optional, Dict, Any, List

from sshscan.core.handshake import (
    CLIENT_BANNER,
    DEFAULT_CONNECT_TIMEOUT,
    DEFAULT_OPERATION_TIMEOUT,
    DEFAULT_PORT,
)


OUTPUT_FORMATS = ("text", "json")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _typed(section: str, key: str, value: Any, kind: Any) -> Any:
    """Check a loaded value against its field type; ints widen to float."""
    if kind is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    if not isinstance(value, kind) or (kind is not bool and isinstance(value, bool)):
        raise ConfigError(
            f"{section}.{key} must be of type {_type_name(kind)}, got {type(value).__name__}"
        )
    return value


def _type_name(kind: Any) -> str:
    if isinstance(kind, tuple):
        return " or ".join(k.__name__ for k in kind)
    return kind.__name__


@dataclass
class ProbeConfig:
    """Handshake probe configuration."""
    default_port: str = DEFAULT_PORT
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    operation_timeout: float = DEFAULT_OPERATION_TIMEOUT
    strict_read: bool = False
    client_banner: str = CLIENT_BANNER

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProbeConfig":
        """Create from dictionary."""
        return cls(
            default_port=str(_typed("probe", "default_port", data.get("default_port", DEFAULT_PORT), (str, int))),
            connect_timeout=_typed("probe", "connect_timeout", data.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT), float),
            operation_timeout=_typed("probe", "operation_timeout", data.get("operation_timeout", DEFAULT_OPERATION_TIMEOUT), float),
            strict_read=_typed("probe", "strict_read", data.get("strict_read", False), bool),
            client_banner=_typed("probe", "client_banner", data.get("client_banner", CLIENT_BANNER), str),
        )


@dataclass
class OutputConfig:
    """Output configuration."""
    default_format: str = "text"
    color_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OutputConfig":
        """Create from dictionary."""
        return cls(
            default_format=_typed("output", "default_format", data.get("default_format", "text"), str),
            color_enabled=_typed("output", "color_enabled", data.get("color_enabled", True), bool),
        )


@dataclass
class AdvancedConfig:
    """Advanced configuration."""
    log_level: str = "WARNING"
    log_file: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdvancedConfig":
        """Create from dictionary."""
        log_file = data.get("log_file")
        if log_file is not None:
            _typed("advanced", "log_file", log_file, str)
        return cls(
            log_level=_typed("advanced", "log_level", data.get("log_level", "WARNING"), str),
            log_file=log_file,
        )


@dataclass
class SshscanConfig:
    """
    Complete SSHScan configuration.

    Contains all configuration sections.
    """
    probe: ProbeConfig = field(default_factory=ProbeConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    advanced: AdvancedConfig = field(default_factory=AdvancedConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "probe": self.probe.to_dict(),
            "output": self.output.to_dict(),
            "advanced": self.advanced.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SshscanConfig":
        """Create from dictionary."""
        return cls(
            probe=ProbeConfig.from_dict(data.get("probe", {})),
            output=OutputConfig.from_dict(data.get("output", {})),
            advanced=AdvancedConfig.from_dict(data.get("advanced", {})),
        )

    def get_value(self, key_path: str) -> Any:
        """
        Get a configuration value by dot-separated path.

        Args:
            key_path: Dot-separated path (e.g., "probe.connect_timeout")

        Returns:
            Configuration value
        """
        parts = key_path.split(".")
        obj: Any = self.to_dict()

        for part in parts:
            if isinstance(obj, dict) and part in obj:
                obj = obj[part]
            else:
                raise KeyError(f"Configuration key not found: {key_path}")

        return obj

    def set_value(self, key_path: str, value: Any) -> None:
        """
        Set a configuration value by dot-separated path.

        Args:
            key_path: Dot-separated path (e.g., "probe.strict_read")
            value: Value to set
        """
        parts = key_path.split(".")
        if len(parts) != 2:
            raise ValueError(f"Invalid key path: {key_path}")

        section, key = parts

        if not hasattr(self, section):
            raise KeyError(f"Configuration section not found: {section}")

        section_obj = getattr(self, section)
        if not hasattr(section_obj, key):
            raise KeyError(f"Configuration key not found: {key_path}")

        # Convert value type if needed
        current_value = getattr(section_obj, key)
        if current_value is not None:
            if isinstance(current_value, bool):
                value = str(value).lower() in ("true", "1", "yes")
            elif isinstance(current_value, int):
                value = int(value)
            elif isinstance(current_value, float):
                value = float(value)
            elif isinstance(current_value, str):
                value = str(value)
        setattr(section_obj, key, value)


class ConfigError(Exception):
    """Configuration error."""
    pass


class ConfigManager:
    """
    Configuration file manager.

    Handles loading and saving configuration from multiple sources:
    1. Built-in defaults
    2. User config (~/.sshscan/config.toml)
    3. Project config (.sshscan.toml)
    4. Environment variables (SSHSCAN_*)
    5. CLI arguments (highest priority)
    """

    DEFAULT_USER_CONFIG = Path.home() / ".sshscan" / "config.toml"
    PROJECT_CONFIG_NAME = ".sshscan.toml"
    ENV_PREFIX = "SSHSCAN_"

    def __init__(
        self,
        user_config_path: Optional[Path] = None,
        project_config_path: Optional[Path] = None,
        load_env: bool = True
    ):
        """
        Initialize ConfigManager.

        Args:
            user_config_path: Custom user config path
            project_config_path: Custom project config path
            load_env: Whether to load from environment variables
        """
        self.user_config_path = user_config_path or self.DEFAULT_USER_CONFIG
        self.project_config_path = project_config_path
        self.load_env = load_env

        self._config = SshscanConfig()
        self._loaded_sources: List[str] = ["defaults"]

    def load(self) -> SshscanConfig:
        """
        Load configuration from all sources.

        Priority (lowest to highest):
        1. Built-in defaults
        2. User config
        3. Project config
        4. Environment variables

        Returns:
            Merged SshscanConfig
        """
        self._config = SshscanConfig()
        self._loaded_sources = ["defaults"]

        if self.user_config_path.exists():
            try:
                self._load_toml_file(self.user_config_path)
                self._loaded_sources.append(f"user:{self.user_config_path}")
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"Error loading user config: {e}")

        project_config = self._find_project_config()
        if project_config and project_config.exists():
            try:
                self._load_toml_file(project_config)
                self._loaded_sources.append(f"project:{project_config}")
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(f"Error loading project config: {e}")

        if self.load_env:
            self._load_environment()

        return self._config

    def get_config(self) -> SshscanConfig:
        """Get current configuration."""
        return self._config

    def get_loaded_sources(self) -> List[str]:
        """Get list of loaded configuration sources."""
        return self._loaded_sources.copy()

    def save_user_config(
        self,
        config: Optional[SshscanConfig] = None,
        path: Optional[Path] = None
    ) -> Path:
        """
        Save configuration to user config file.

        Args:
            config: Configuration to save (uses current if None)
            path: Custom path (uses default if None)

        Returns:
            Path to saved config file
        """
        config = config or self._config
        path = path or self.user_config_path

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(self._generate_toml(config))

        return path

    def init_config(
        self,
        path: Optional[Path] = None,
        include_comments: bool = True
    ) -> Path:
        """
        Initialize a new configuration file with defaults.

        Args:
            path: Path for config file
            include_comments: Whether to include comments

        Returns:
            Path to created config file
        """
        path = path or self.user_config_path

        if path.exists():
            raise ConfigError(f"Config file already exists: {path}")

        content = self._generate_toml(SshscanConfig(), include_comments=include_comments)

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            f.write(content)

        return path

    def get_value(self, key_path: str) -> Any:
        """Get a configuration value by dot-separated path."""
        return self._config.get_value(key_path)

    def set_value(self, key_path: str, value: Any) -> None:
        """Set a configuration value by dot-separated path."""
        self._config.set_value(key_path, value)

    def show_config(self, section: Optional[str] = None) -> str:
        """
        Generate a display string for configuration.

        Args:
            section: Specific section to show (shows all if None)

        Returns:
            Formatted configuration string
        """
        config_dict = self._config.to_dict()

        if section:
            if section not in config_dict:
                raise ConfigError(f"Unknown section: {section}")
            config_dict = {section: config_dict[section]}

        return self._format_config_display(config_dict)

    def validate(self) -> List[str]:
        """
        Validate current configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        probe = self._config.probe

        try:
            port = int(probe.default_port)
            if port < 1 or port > 65535:
                errors.append("probe.default_port must be between 1 and 65535")
        except ValueError:
            errors.append("probe.default_port must be a number")

        if probe.connect_timeout <= 0:
            errors.append("probe.connect_timeout must be positive")

        if probe.operation_timeout < 0:
            errors.append("probe.operation_timeout must not be negative (0 disables it)")

        if not probe.client_banner.startswith("SSH-2.0-"):
            errors.append("probe.client_banner must start with 'SSH-2.0-'")
        if "\r" in probe.client_banner or "\n" in probe.client_banner:
            errors.append("probe.client_banner must not contain CR or LF")

        if self._config.output.default_format not in OUTPUT_FORMATS:
            errors.append(f"output.default_format must be one of: {', '.join(OUTPUT_FORMATS)}")

        if self._config.advanced.log_level.upper() not in LOG_LEVELS:
            errors.append(f"advanced.log_level must be one of: {', '.join(LOG_LEVELS)}")

        return errors

    def _find_project_config(self) -> Optional[Path]:
        """Find project config file by walking up directory tree."""
        if self.project_config_path:
            return self.project_config_path

        current = Path.cwd()

        while current != current.parent:
            config_path = current / self.PROJECT_CONFIG_NAME
            if config_path.exists():
                return config_path
            current = current.parent

        return None

    def _load_toml_file(self, path: Path) -> None:
        """Load and merge a TOML config file."""
        with open(path, "rb") as f:
            data = tomllib.load(f)

        self._merge_config(data)

    def _merge_config(self, data: Dict[str, Any]) -> None:
        """Merge loaded config data into current config."""
        if "probe" in data:
            self._config.probe = ProbeConfig.from_dict({
                **self._config.probe.to_dict(),
                **data["probe"]
            })

        if "output" in data:
            self._config.output = OutputConfig.from_dict({
                **self._config.output.to_dict(),
                **data["output"]
            })

        if "advanced" in data:
            self._config.advanced = AdvancedConfig.from_dict({
                **self._config.advanced.to_dict(),
                **data["advanced"]
            })

    def _load_environment(self) -> None:
        """Load configuration from environment variables."""
        env_mappings = {
            f"{self.ENV_PREFIX}PORT": ("probe", "default_port", str),
            f"{self.ENV_PREFIX}CONNECT_TIMEOUT": ("probe", "connect_timeout", float),
            f"{self.ENV_PREFIX}OPERATION_TIMEOUT": ("probe", "operation_timeout", float),
            f"{self.ENV_PREFIX}STRICT_READ": ("probe", "strict_read", self._parse_bool),
            f"{self.ENV_PREFIX}CLIENT_BANNER": ("probe", "client_banner", str),
            f"{self.ENV_PREFIX}OUTPUT_FORMAT": ("output", "default_format", str),
            f"{self.ENV_PREFIX}COLOR": ("output", "color_enabled", self._parse_bool),
            f"{self.ENV_PREFIX}LOG_LEVEL": ("advanced", "log_level", str),
            f"{self.ENV_PREFIX}LOG_FILE": ("advanced", "log_file", str),
        }

        for env_var, (section, key, converter) in env_mappings.items():
            value = os.environ.get(env_var)
            if value is None:
                continue
            try:
                converted = converter(value)
            except (ValueError, TypeError):
                raise ConfigError(f"Invalid value for {env_var}: {value!r}")
            setattr(getattr(self._config, section), key, converted)
            if "environment" not in self._loaded_sources:
                self._loaded_sources.append("environment")

    @staticmethod
    def _parse_bool(value: str) -> bool:
        """Parse boolean from string."""
        return value.lower() in ("true", "1", "yes", "on")

    def _generate_toml(
        self,
        config: SshscanConfig,
        include_comments: bool = True
    ) -> str:
        """Generate TOML content from config."""
        lines = []

        if include_comments:
            lines.extend([
                "# SSHScan Configuration File",
                "# Generated by SSHScan",
                "",
                "# Handshake probe settings",
                "# operation_timeout bounds all reads and writes after connecting (0 disables it)",
            ])
        lines.append("[probe]")
        lines.append(f'default_port = "{config.probe.default_port}"')
        lines.append(f"connect_timeout = {float(config.probe.connect_timeout)}")
        lines.append(f"operation_timeout = {float(config.probe.operation_timeout)}")
        lines.append(f"strict_read = {str(config.probe.strict_read).lower()}")
        lines.append(f'client_banner = "{config.probe.client_banner}"')
        lines.append("")

        if include_comments:
            lines.append("# Output settings (default_format: text or json)")
        lines.append("[output]")
        lines.append(f'default_format = "{config.output.default_format}"')
        lines.append(f"color_enabled = {str(config.output.color_enabled).lower()}")
        lines.append("")

        if include_comments:
            lines.append("# Advanced settings")
        lines.append("[advanced]")
        lines.append(f'log_level = "{config.advanced.log_level}"')
        if config.advanced.log_file:
            lines.append(f'log_file = "{config.advanced.log_file}"')
        lines.append("")

        return "\n".join(lines)

    def _format_config_display(self, config_dict: Dict[str, Any], indent: int = 0) -> str:
        """Format config dictionary for display."""
        lines = []
        prefix = "  " * indent

        for key, value in config_dict.items():
            if isinstance(value, dict):
                lines.append(f"{prefix}[{key}]")
                lines.append(self._format_config_display(value, indent + 1))
            elif isinstance(value, str):
                lines.append(f'{prefix}{key} = "{value}"')
            elif isinstance(value, bool):
                lines.append(f"{prefix}{key} = {str(value).lower()}")
            elif value is None:
                lines.append(f"{prefix}{key} = (not set)")
            else:
                lines.append(f"{prefix}{key} = {value}")

        return "\n".join(lines)


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get or create global config manager."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
        _config_manager.load()
    return _config_manager


def get_config() -> SshscanConfig:
    """Get current configuration."""
    return get_config_manager().get_config()


def reload_config() -> SshscanConfig:
    """Reload configuration from all sources."""
    global _config_manager
    _config_manager = ConfigManager()
    return _config_manager.load()
