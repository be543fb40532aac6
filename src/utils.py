"""
Utility functions for the overlay engine
"""

import json
from pathlib import Path
import hashlib

CONFIG_PATH = Path("config.json")


def hash_text(text, algorithm='sha256'):
    """Hex digest of a (unicode) string, hashed as UTF-8"""
    hash_func = hashlib.new(algorithm)
    hash_func.update(text.encode('utf-8'))
    return hash_func.hexdigest()


def save_json(data, file_path):
    """Save data to JSON file"""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    with open(file_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def load_json(file_path):
    """Load data from JSON file"""
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_config(section, defaults, config_path=None):
    """
    Load one section of config.json merged over built-in defaults

    Args:
        section (str): Top-level key in config.json
        defaults (dict): Values used for anything the file does not set
        config_path (Path or str): Alternate config file (default: ./config.json)

    Returns:
        dict: Merged configuration (nested dicts merged one level deep)
    """
    config_path = Path(config_path) if config_path else CONFIG_PATH
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in defaults.items()}

    if not config_path.exists():
        return merged

    try:
        loaded = load_json(config_path).get(section, {})
    except (OSError, ValueError) as e:
        print(f"[!] Error loading {section} config: {e}")
        return merged

    for key, value in loaded.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value

    return merged
