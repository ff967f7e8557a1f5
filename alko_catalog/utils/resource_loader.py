"""Resource file (YAML) loader"""
import os
import yaml
from typing import Any, Dict, List
from functools import lru_cache

from alko_catalog.core.logging import logger


def get_resource_path(relative_path: str) -> str:
    """Absolute path of a file under alko_catalog/resources"""
    # alko_catalog/utils/resource_loader.py -> alko_catalog/utils -> alko_catalog
    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base_dir, "resources", relative_path)


@lru_cache(maxsize=32)
def load_yaml_resource(relative_path: str) -> Dict[str, Any]:
    """Load and memoize a YAML resource"""
    path = get_resource_path(relative_path)
    if not os.path.exists(path):
        logger.warning(f"Resource not found: {path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except Exception as e:
        logger.error(f"Failed to load YAML resource {path}: {e}")
        return {}


def load_food_symbols() -> List[Dict[str, Any]]:
    """Alko food pairing symbols: name, symbol_id, english_names"""
    data = load_yaml_resource("food_symbols.yaml")
    return data.get("food_symbols", [])


def load_occasions() -> Dict[str, Dict[str, Any]]:
    """Occasion keyword -> preferred types / price multiplier"""
    data = load_yaml_resource("occasions.yaml")
    return data.get("occasions", {})
