"""Configuration loading and validation for capturectl."""

from __future__ import annotations

import importlib
import logging
import os
from dataclasses import dataclass, field
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError

from capturectl.core.codec import schema_validator
from capturectl.core.errors import ConfigLoadError, ConfigValidationError
from capturectl.protocols.base import HandlerFactory

CONFIG_FILENAME = "capture.yaml"
LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class CaptureConfig:
    fixtures_dir: Path = Path("fixtures")
    default_timeout: float = 5.0
    worker_timeout: float = 20.0
    use_worker: bool = True
    max_retries: int = 2
    default_protocol: str = "source"
    protocols: dict[str, str] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()


def user_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "capturectl" / CONFIG_FILENAME


def _read_yaml(path: Path | Traversable) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")

    validator = schema_validator("capture_config.schema.json")
    try:
        validator.validate(loaded)
    except ValidationError as exc:
        where = ".".join(str(p) for p in exc.path)
        where = f" ({where})" if where else ""
        raise ConfigValidationError(f"Schema validation failed for {path}{where}: {exc.message}") from exc
    return loaded


def load_config(path: str | Path | None = None) -> CaptureConfig:
    """Merge packaged defaults, the user config file, and an explicit file.

    Later sources win key by key; the ``protocols`` mapping is merged per name.
    Relative ``fixtures_dir`` values resolve against the file that set them,
    except for the packaged default which stays relative to the working
    directory.
    """
    merged = dict(_read_yaml(resources.files("capturectl.defaults").joinpath(CONFIG_FILENAME)))
    protocols: dict[str, str] = dict(merged.pop("protocols", {}))
    fixtures_dir = Path(merged.pop("fixtures_dir"))
    warnings: list[str] = []

    sources = [user_config_path()]
    if path is not None:
        explicit = Path(path)
        if not explicit.is_file():
            raise ConfigLoadError(f"Config file {explicit} does not exist")
        sources.append(explicit)

    for source in sources:
        if not source.is_file():
            continue
        doc = _read_yaml(source)
        for name, target in doc.pop("protocols", {}).items():
            if name in protocols and protocols[name] != target:
                warning = f"Protocol '{name}' from {source} overrides {protocols[name]}"
                LOGGER.warning(warning)
                warnings.append(warning)
            protocols[name] = target
        if "fixtures_dir" in doc:
            fixtures_dir = source.parent / Path(doc.pop("fixtures_dir")).expanduser()
        merged.update(doc)

    return CaptureConfig(
        fixtures_dir=fixtures_dir,
        default_timeout=float(merged["default_timeout"]),
        worker_timeout=float(merged["worker_timeout"]),
        use_worker=bool(merged["use_worker"]),
        max_retries=int(merged["max_retries"]),
        default_protocol=str(merged["default_protocol"]),
        protocols=protocols,
        warnings=tuple(warnings),
    )


def load_protocol_factories(config: CaptureConfig) -> dict[str, HandlerFactory]:
    """Import every ``module:attribute`` entry of the protocol registry."""
    factories: dict[str, HandlerFactory] = {}
    for name, import_path in sorted(config.protocols.items()):
        module_path, _, attr_path = import_path.partition(":")
        try:
            target: Any = importlib.import_module(module_path)
            for attr in attr_path.split("."):
                target = getattr(target, attr)
        except (ImportError, AttributeError) as exc:
            raise ConfigLoadError(f"Could not import protocol '{name}' from {import_path}: {exc}") from exc
        factories[name] = target
    return factories
