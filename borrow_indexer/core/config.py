# borrow_indexer/core/config.py

from typing import Dict, List, Optional, Mapping
from pathlib import Path
import os
import re
import json
import logging

import msgspec
import yaml
from dotenv import load_dotenv

from ..types import EvmAddress, to_evm_address
from ..types.configs.config import DatabaseConfig, RpcConfig, PipelineSettings, PathsConfig
from ..types.configs.source import SourceConfig
from ..types.configs.transformer import TransformerConfig
from .exceptions import ConfigurationError
from .logging import IndexerLogger, log_with_context

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


class IndexerConfig(msgspec.Struct, frozen=True):
    name: str
    starting_block: int
    rpc: RpcConfig
    sources: List[SourceConfig]
    transformers: List[TransformerConfig] = []
    addresses: Dict[str, str] = {}
    database: DatabaseConfig = msgspec.field(default_factory=DatabaseConfig)
    pipeline: PipelineSettings = msgspec.field(default_factory=PipelineSettings)
    paths: PathsConfig = msgspec.field(default_factory=PathsConfig)

    @classmethod
    def from_file(cls, config_path: str, env_vars: Optional[Mapping[str, str]] = None) -> 'IndexerConfig':
        logger = IndexerLogger.get_logger('core.config')
        path = Path(config_path)
        log_with_context(logger, logging.INFO, "Loading configuration", config_path=str(path))

        if not path.exists():
            raise ConfigurationError("Config file not found", str(path))

        if env_vars is None:
            load_dotenv()
            env_vars = os.environ

        raw_text = _substitute_env(path.read_text(), env_vars)

        if path.suffix.lower() in ('.yaml', '.yml'):
            data = yaml.safe_load(raw_text)
        elif path.suffix.lower() == '.json':
            data = json.loads(raw_text)
        else:
            raise ConfigurationError("Unsupported config file type", path.suffix)

        config = cls.from_dict(data)

        # ABI paths in the file are relative to the file itself
        abi_dir = Path(config.paths.abi_dir)
        if not abi_dir.is_absolute():
            paths = msgspec.structs.replace(config.paths, abi_dir=str(path.parent / abi_dir))
            config = msgspec.structs.replace(config, paths=paths)

        log_with_context(logger, logging.INFO, "Configuration loaded",
                         name=config.name,
                         source_count=len(config.sources),
                         transformer_count=len(config.transformers))
        return config

    @classmethod
    def from_dict(cls, data: dict) -> 'IndexerConfig':
        try:
            return msgspec.convert(data, type=cls)
        except msgspec.ValidationError as e:
            raise ConfigurationError("Invalid configuration", str(e)) from e

    def resolve_address(self, key_or_address: str) -> EvmAddress:
        """Resolve an address-book key (e.g. ``MCD_DOG``) or a literal address."""
        if key_or_address.startswith("0x"):
            return to_evm_address(key_or_address)
        if key_or_address in self.addresses:
            return to_evm_address(self.addresses[key_or_address])
        raise ConfigurationError("Unknown address key", key_or_address)

    def source_config(self, source_id: str) -> SourceConfig:
        for source in self.sources:
            if source.id == source_id:
                return source
        raise ConfigurationError("Unknown source", source_id)

    def transformer_config(self, name: str) -> TransformerConfig:
        for transformer in self.transformers:
            if transformer.name == name:
                return transformer
        raise ConfigurationError("Unknown transformer", name)


def _substitute_env(text: str, env_vars: Mapping[str, str]) -> str:
    def replace(match: re.Match) -> str:
        name, default = match.group(1), match.group(2)
        if name in env_vars and env_vars[name] != "":
            return env_vars[name]
        if default is not None:
            return default
        raise ConfigurationError("Missing environment variable", name)

    return _ENV_PATTERN.sub(replace, text)
