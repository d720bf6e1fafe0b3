# borrow_indexer/contracts/abi_loader.py

import json
from pathlib import Path
from typing import List, Dict, Any, Tuple

from ..core.exceptions import ConfigurationError
from ..core.logging import LoggingMixin


class ABILoader(LoggingMixin):
    """Loads contract ABIs from filesystem with caching"""

    def __init__(self, abi_base_path: Path):
        self.abi_base_path = Path(abi_base_path)
        self._abi_cache: Dict[str, List[Dict[str, Any]]] = {}

        self.log_debug("ABI loader initialized", abi_base_path=str(self.abi_base_path))

    def load_abi(self, abi_file: str) -> List[Dict[str, Any]]:
        if abi_file in self._abi_cache:
            return self._abi_cache[abi_file]

        abi_path = self.abi_base_path / abi_file
        if not abi_path.exists():
            self.log_error("ABI file not found", abi_path=str(abi_path))
            raise ConfigurationError("ABI file not found", str(abi_path))

        try:
            with open(abi_path, 'r') as f:
                abi_data = json.load(f)
        except json.JSONDecodeError as e:
            self.log_error("Invalid JSON in ABI file", abi_path=str(abi_path), error=str(e))
            raise ConfigurationError("Invalid JSON in ABI file", str(abi_path)) from e

        # Handle different ABI file formats
        if isinstance(abi_data, dict) and 'abi' in abi_data:
            abi_data = abi_data['abi']

        if not isinstance(abi_data, list):
            raise ConfigurationError("ABI is not a list", str(abi_path))

        self._abi_cache[abi_file] = abi_data

        self.log_debug("ABI loaded successfully",
                       abi_path=str(abi_path),
                       abi_functions=len([item for item in abi_data if item.get('type') == 'function']),
                       abi_events=len([item for item in abi_data if item.get('type') == 'event']))

        return abi_data


def select_abi_entries(abi: List[Dict[str, Any]],
                       event_names=None,
                       note_functions=None) -> Tuple[Dict[str, Any], ...]:
    """
    Keep the events a source claims plus the functions it decodes as ds-notes.
    ``note_functions`` holds canonical signatures like ``deal(uint256)``.
    """
    selected = []
    for entry in abi:
        if entry.get('type') == 'event':
            if event_names is None or entry.get('name') in event_names:
                selected.append(entry)
        elif entry.get('type') == 'function' and note_functions:
            if function_signature(entry) in note_functions:
                selected.append(entry)
    return tuple(selected)


def function_signature(entry: Dict[str, Any]) -> str:
    return f"{entry['name']}({','.join(canonical_type(i) for i in entry.get('inputs', []))})"


def canonical_type(abi_input: Dict[str, Any]) -> str:
    abi_type = abi_input['type']
    if abi_type.startswith('tuple'):
        inner = ','.join(canonical_type(c) for c in abi_input.get('components', []))
        return f"({inner}){abi_type[len('tuple'):]}"
    return abi_type
