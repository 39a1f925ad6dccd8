import json
import os
from typing import Dict, Any, List

from homeservice.core.logger import logger

CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))),
    "data",
    "company_config.json",
)

def load_company_config(path: str = CONFIG_PATH) -> Dict[str, Any]:
    """
    Loads company configuration from JSON file.
    Raises FileNotFoundError if config is missing.
    Returns: Dict containing config.
    """
    if not os.path.exists(path):
        logger.critical(f"❌ Configuration file '{path}' not found! The application cannot start.")
        raise FileNotFoundError(f"Configuration file not found at {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            config = json.load(f)
            logger.info(f"✅ Configuration loaded for: {config.get('company_name', 'Unknown')}")
            return config
    except json.JSONDecodeError as e:
        logger.critical(f"❌ Failed to parse JSON configuration: {e}")
        raise ValueError(f"Invalid JSON in config file: {e}")

def get_serviceable_postal_codes(config: Dict[str, Any]) -> List[str]:
    """
    Helper to get the coverage list as trimmed strings.
    An env override (SERVICEABLE_PINCODES, comma separated) wins over the file.
    """
    override = os.environ.get("SERVICEABLE_PINCODES")
    if override:
        return [code.strip() for code in override.split(",") if code.strip()]
    return [str(code).strip() for code in config.get("serviceable_postal_codes", [])]
