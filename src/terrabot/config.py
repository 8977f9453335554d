"""Configuration helpers for terrabot sessions."""

from __future__ import annotations

import importlib
import os
import pathlib
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, MutableMapping, Optional

import yaml

PROVIDERS = ("groq", "openai", "gemini")
FALLBACK_PROVIDER = "groq"

_KEY_ENV = {
    "openai": "OPENAI_API_KEY",
    "groq": "GROQ_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


class ConfigError(RuntimeError):
    """Raised when configuration files are invalid."""


@dataclass
class AgentSettings:
    """Provider credentials and scheduler pacing shared by every agent in a session."""

    ai_provider: str = "groq"
    openai_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    openai_model: str = "gpt-4-turbo-preview"
    groq_model: str = "llama-3.1-8b-instant"
    gemini_model: str = "gemini-2.5-flash"
    max_tokens: int = 8000
    temperature: float = 0.7
    action_tick_delay: int = 30
    enable_chat_responses: bool = True
    max_active_agents: int = 5
    provider_factory: Optional[str] = None

    def __post_init__(self) -> None:
        self.ai_provider = str(self.ai_provider).strip().lower()
        if self.ai_provider not in PROVIDERS:
            raise ConfigError(
                f"Unknown ai_provider '{self.ai_provider}' (expected one of {', '.join(PROVIDERS)})"
            )
        if self.action_tick_delay < 0:
            raise ConfigError("action_tick_delay must not be negative")
        if self.max_active_agents <= 0:
            raise ConfigError("max_active_agents must be positive")

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "AgentSettings":
        if not data:
            return cls().with_environment()
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(sorted(unknown))}")
        try:
            settings = cls(
                ai_provider=data.get("ai_provider", "groq"),
                openai_api_key=data.get("openai_api_key"),
                groq_api_key=data.get("groq_api_key"),
                gemini_api_key=data.get("gemini_api_key"),
                openai_model=str(data.get("openai_model", "gpt-4-turbo-preview")),
                groq_model=str(data.get("groq_model", "llama-3.1-8b-instant")),
                gemini_model=str(data.get("gemini_model", "gemini-2.5-flash")),
                max_tokens=int(data.get("max_tokens", 8000)),
                temperature=float(data.get("temperature", 0.7)),
                action_tick_delay=int(data.get("action_tick_delay", 30)),
                enable_chat_responses=bool(data.get("enable_chat_responses", True)),
                max_active_agents=int(data.get("max_active_agents", 5)),
                provider_factory=data.get("provider_factory"),
            )
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"Invalid settings: {exc}") from exc
        return settings.with_environment()

    def with_environment(self, environ: Optional[Mapping[str, str]] = None) -> "AgentSettings":
        """Fill missing API keys from the process environment."""

        environ = os.environ if environ is None else environ
        for provider, variable in _KEY_ENV.items():
            attr = f"{provider}_api_key"
            if not getattr(self, attr) and environ.get(variable):
                setattr(self, attr, environ[variable])
        return self

    def api_key(self, provider: str) -> Optional[str]:
        return getattr(self, f"{provider}_api_key", None) or None

    def has_credentials(self) -> bool:
        if self.provider_factory:
            return True
        return any(self.api_key(provider) for provider in PROVIDERS)


@dataclass
class WorldSpec:
    """Dimensions of the in-memory grid world used by ``simulate``."""

    width: int = 200
    height: int = 150
    surface: int = 60
    players: List[str] = field(default_factory=lambda: ["player"])

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "WorldSpec":
        if not data:
            return cls()
        spec = cls(
            width=int(data.get("width", 200)),
            height=int(data.get("height", 150)),
            surface=int(data.get("surface", 60)),
            players=[str(name) for name in data.get("players", ["player"])],
        )
        if spec.width <= 0 or spec.height <= 0:
            raise ConfigError("World dimensions must be positive")
        if not 0 < spec.surface < spec.height:
            raise ConfigError("World surface must lie inside the world height")
        return spec


@dataclass
class SessionConfig:
    """Representation of the YAML configuration."""

    name: str
    settings: AgentSettings
    world: WorldSpec = field(default_factory=WorldSpec)
    agents: List[str] = field(default_factory=list)
    commands: Dict[str, List[str]] = field(default_factory=dict)
    actions: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Any, *, name: str = "session") -> "SessionConfig":
        if not isinstance(data, MutableMapping):
            raise ConfigError("Configuration root must be a mapping")
        agents = [str(agent) for agent in (data.get("agents") or [])]
        if len(set(agents)) != len(agents):
            raise ConfigError("Agent names must be unique")
        commands: Dict[str, List[str]] = {}
        for agent, lines in (data.get("commands") or {}).items():
            if agent not in agents:
                raise ConfigError(f"Commands reference unknown agent '{agent}'")
            commands[str(agent)] = [str(line) for line in ensure_list(lines)]
        actions = data.get("actions") or {}
        if not isinstance(actions, Mapping) or not all(isinstance(path, str) for path in actions.values()):
            raise ConfigError("actions must map action names to module:qualname strings")
        return cls(
            name=str(data.get("name", name)),
            settings=AgentSettings.from_mapping(data.get("settings")),
            world=WorldSpec.from_mapping(data.get("world")),
            agents=agents,
            commands=commands,
            actions={str(key).strip().lower(): path for key, path in actions.items()},
        )

    @classmethod
    def from_file(cls, path: str | pathlib.Path) -> "SessionConfig":
        data = yaml.safe_load(pathlib.Path(path).read_text())
        return cls.from_mapping(data, name=pathlib.Path(path).stem)

    @classmethod
    def from_yaml(cls, text: str) -> "SessionConfig":
        return cls.from_mapping(yaml.safe_load(text))


def import_string(path: str) -> Any:
    """Return attribute from module specified by path "module:qualname"."""

    if ":" not in path:
        raise ConfigError(f"Import path '{path}' must use module:qualname format")
    module_path, attr = path.split(":", 1)
    module = importlib.import_module(module_path)
    try:
        return getattr(module, attr)
    except AttributeError as exc:
        raise ConfigError(f"Module '{module_path}' has no attribute '{attr}'") from exc


def ensure_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        return list(value)
    return [value]
