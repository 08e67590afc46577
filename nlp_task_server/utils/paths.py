"""Project path helpers based on pathlib."""

from pathlib import Path


def project_root() -> Path:
    """Return repository root directory."""
    return Path(__file__).resolve().parents[2]


def config_dir() -> Path:
    """Return Hydra config directory."""
    return project_root() / "configs"


def resolve_model_directory(models_directory: str | Path, model_name: str) -> Path:
    """Return the directory of ``model_name`` below ``models_directory``.

    An empty model name means ``models_directory`` is itself the model directory.
    """
    base = Path(models_directory)
    if not base.is_absolute():
        base = project_root() / base
    return base / model_name if model_name else base
