"""Loading of the templated ``config.yaml``."""

import os
import re
from pathlib import Path

import yaml
from loguru import logger
from pydantic_core import ValidationError

from src.flattr_auth.runtime.config.config_data import ConfigData

_PLACEHOLDER = re.compile(r"\$\{(?P<name>\w+)(?:(?P<op>:-|:\?)(?P<arg>[^}]*))?\}")


def _resolve_placeholder(match: re.Match) -> str:
    name, op, arg = match.group("name", "op", "arg")
    value = os.getenv(name)
    if op == ":-":
        return arg if value is None else value
    if value is not None:
        return value
    if op == ":?":
        raise ValueError(f"Required environment variable {name}: {arg}")
    raise ValueError(f"Required environment variable {name} not set")


def _strip_comment(line: str) -> str:
    """``line`` without its YAML comment; ``#`` inside quotes or words is kept."""
    quote = None
    for i, ch in enumerate(line):
        if quote:
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "#" and (i == 0 or line[i - 1] in " \t"):
            return line[:i].rstrip()
    return line


def strip_yaml_comments(text: str) -> str:
    return "\n".join(_strip_comment(line) for line in text.splitlines())


def substitute_env_vars(text: str) -> str:
    """
    Replace ``${VAR}`` placeholders with environment values.

    ``${VAR}`` must be set, ``${VAR:-default}`` falls back to ``default`` and
    ``${VAR:?message}`` fails with ``message`` when unset.
    """
    return _PLACEHOLDER.sub(_resolve_placeholder, text)


def apply_environment_overrides(env_mode: str) -> list[str]:
    """Promote ``<ENV>_FOO`` variables to ``FOO`` for the active environment.

    Returns the promoted names only; values may be secrets.
    """
    prefix = f"{env_mode.upper()}_"
    promoted = []
    for name, value in list(os.environ.items()):
        if name.startswith(prefix):
            os.environ[name[len(prefix):]] = value
            promoted.append(name[len(prefix):])
    return promoted


def load_templated_yaml(file_path: Path) -> ConfigData:
    """
    Read ``file_path``, substitute the environment and validate the ``config`` section.

    Raises:
        ValueError: unset required variables, malformed YAML or invalid values
        FileNotFoundError: the file does not exist
    """
    raw = Path(file_path).read_text()

    env_mode = os.getenv("APP_ENVIRONMENT", "development")
    logger.info("Loading configuration for environment: {}", env_mode)
    promoted = apply_environment_overrides(env_mode)
    if promoted:
        logger.info("Applied {}-specific overrides: {}", env_mode, sorted(promoted))

    try:
        loaded = yaml.safe_load(substitute_env_vars(strip_yaml_comments(raw)))
    except yaml.YAMLError as e:
        raise ValueError(f"Error parsing YAML: {e}") from e
    if not isinstance(loaded, dict):
        raise ValueError(f"{file_path} does not contain a mapping")

    try:
        config = ConfigData.model_validate(loaded.get("config") or {})
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e

    disabled = [name for name, enabled in config.providers.enabled_map().items() if not enabled]
    if disabled:
        logger.info("Login providers disabled by configuration: {}", ", ".join(disabled))
    return config
