import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    
    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    # Older files kept the job defaults at the root
    if "job" not in data:
        job_keys = {k: data.pop(k) for k in list(data) if k not in ("binaries", "logging")}
        if job_keys:
            data["job"] = job_keys

    return AppConfig(**data)
