"""
Pipeline Configuration
=======================
Fixed defaults for the embedding preprocessor plus an optional
``configs/settings.yaml`` overlay.

With no settings file and no command-line overrides the pipeline runs
with the constants below:

    model       bge-base-en-v1.5-f32.gguf
    input       documents.json
    output      preprocessed_documents.json
    n_ctx       512 tokens
    n_batch     512 tokens

settings.yaml layout::

    model:
      path: bge-base-en-v1.5-f32.gguf
      n_ctx: 512
      n_batch: 512
      expected_dim: 768
    io:
      input: documents.json
      output: preprocessed_documents.json
    pipeline:
      progress_every: 100

Precedence: command-line flag > settings file > constant.
"""

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------
DEFAULT_MODEL_PATH = "bge-base-en-v1.5-f32.gguf"
DEFAULT_INPUT_FILE = "documents.json"
DEFAULT_OUTPUT_FILE = "preprocessed_documents.json"

DEFAULT_N_CTX = 512        # context window for BGE-base
DEFAULT_N_BATCH = 512      # max tokens submitted per forward pass
EXPECTED_EMBEDDING_DIM = 768  # BGE-base hidden size; only warned on mismatch
PROGRESS_EVERY = 100       # print a progress line every N documents

SETTINGS_PATH = Path(__file__).resolve().parent.parent / "configs" / "settings.yaml"


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    """Return one top-level settings block, or {} if it is not a mapping."""
    section = data.get(name) or {}
    if not isinstance(section, dict):
        logger.warning("Ignoring settings section '%s': not a mapping", name)
        return {}
    return section


@dataclass(frozen=True)
class Settings:
    """
    Resolved configuration for one pipeline run.

    Attributes:
        model_path     : path to the GGUF encoder model
        input_path     : JSON array of ``{id, text}`` documents
        output_path    : where the embedded documents are written
        n_ctx          : context window (tokens)
        n_batch        : batch size (tokens)
        expected_dim   : embedding size the model is expected to produce
        progress_every : progress line interval, by document index
    """
    model_path: str = DEFAULT_MODEL_PATH
    input_path: str = DEFAULT_INPUT_FILE
    output_path: str = DEFAULT_OUTPUT_FILE
    n_ctx: int = DEFAULT_N_CTX
    n_batch: int = DEFAULT_N_BATCH
    expected_dim: int = EXPECTED_EMBEDDING_DIM
    progress_every: int = PROGRESS_EVERY

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "Settings":
        """Build settings from the nested dict produced by ``load_settings``."""
        model = _section(data, "model")
        io = _section(data, "io")
        pipeline = _section(data, "pipeline")
        defaults = cls()
        return cls(
            model_path=str(model.get("path", defaults.model_path)),
            input_path=str(io.get("input", defaults.input_path)),
            output_path=str(io.get("output", defaults.output_path)),
            n_ctx=int(model.get("n_ctx", defaults.n_ctx)),
            n_batch=int(model.get("n_batch", defaults.n_batch)),
            expected_dim=int(model.get("expected_dim", defaults.expected_dim)),
            progress_every=int(pipeline.get("progress_every", defaults.progress_every)),
        )

    def override(self, **values: Optional[Any]) -> "Settings":
        """Return a copy with every non-None keyword applied."""
        changes = {k: v for k, v in values.items() if v is not None}
        return replace(self, **changes)


def load_settings(path: Optional[Path] = None) -> dict:
    """
    Load settings from a YAML file (``configs/settings.yaml`` by default).

    Returns:
        The parsed YAML as a dict, or an empty dict if the file is missing.
    """
    settings_path = Path(path) if path is not None else SETTINGS_PATH
    if not settings_path.exists():
        logger.warning("Settings file not found: %s -- using defaults", settings_path)
        return {}
    with open(settings_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: top level is not a mapping", settings_path)
        return {}
    logger.debug("Loaded settings from %s", settings_path)
    return data


def resolve_settings(config_path: Optional[str] = None, **overrides: Optional[Any]) -> Settings:
    """Combine constants, the settings file, and explicit overrides."""
    data = load_settings(Path(config_path) if config_path else None)
    return Settings.from_mapping(data).override(**overrides)
