import json
from pathlib import Path
from typing import Any, Dict, List

from testimonium_toolkit.shared.exceptions import ConfigurationException

RESOURCES_ROOT = Path(__file__).resolve().parent.parent.parent / "resources"


class ResourceManager:
    """
    Contract ABIs shipped in ``testimonium_toolkit/resources/<type>/``.

    Only the Testimonium relay and the Ethash contract ABIs are packaged.
    Each file is parsed once per process.
    """

    def __init__(self, root: Path = RESOURCES_ROOT):
        self._root = root.resolve(strict=False)
        self._abis: Dict[str, List[Dict[str, Any]]] = {}

    def get_resource_path(self, resource_type: str, filename: str) -> Path:
        """Path of a packaged resource, which must stay inside its type dir"""
        resource_dir = (self._root / resource_type).resolve(strict=False)
        resource_path = (resource_dir / filename).resolve(strict=False)
        for inner, outer in (
            (resource_dir, self._root),
            (resource_path, resource_dir),
        ):
            try:
                inner.relative_to(outer)
            except ValueError:
                raise ConfigurationException(
                    f"Resource {resource_type}/{filename} escapes {outer}",
                    {"resource_type": resource_type, "filename": filename},
                )
        return resource_path

    def load_abi(self, name: str) -> List[Dict[str, Any]]:
        """ABI of a packaged contract, e.g. "testimonium" or "ethash" """
        if name not in self._abis:
            abi_path = self.get_resource_path("abi", f"{name}.json")
            if not abi_path.exists():
                raise ConfigurationException(
                    f"No packaged ABI for contract {name!r}",
                    {"abi_path": str(abi_path)},
                )
            with open(abi_path) as f:
                self._abis[name] = json.load(f)
        return self._abis[name]


# Global instance
resource_manager = ResourceManager()
