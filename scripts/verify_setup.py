"""
Setup Verification Script
==========================
Quick smoke-test that checks whether every required dependency is
importable and the encoder model file is in place.

Run after setting up the virtual environment:
    python scripts/verify_setup.py
    python scripts/verify_setup.py --model models/bge-base-en-v1.5-f32.gguf

Exit codes:
    0  -- all checks passed
    1  -- one or more checks failed
"""

import argparse
import importlib
import logging
import sys
from pathlib import Path

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

# (module_name, display_name, required)
REQUIRED_PACKAGES = [
    ("numpy", "NumPy", True),
    ("yaml", "PyYAML", True),
    ("llama_cpp", "llama-cpp-python", True),
    ("pytest", "pytest", False),  # tests only
]

DEFAULT_MODEL = "bge-base-en-v1.5-f32.gguf"
GGUF_MAGIC = b"GGUF"


def check_python_version() -> bool:
    """Verify Python >= 3.9."""
    v = sys.version_info
    ok = v >= (3, 9)
    logger.info(
        "Python %d.%d.%d %s",
        v.major, v.minor, v.micro,
        "(OK)" if ok else "(FAIL: need >= 3.9)",
    )
    return ok


def check_package(module: str, display: str, required: bool) -> bool:
    """Try to import a package and report its version if available."""
    try:
        mod = importlib.import_module(module)
        version = getattr(mod, "__version__", "unknown")
        logger.info("  %-30s  %s", display, version)
        return True
    except ImportError:
        tag = "MISSING (required)" if required else "MISSING (optional)"
        logger.warning("  %-30s  %s", display, tag)
        return not required  # optional packages don't cause failure


def check_model_file(path: str) -> bool:
    """Verify the model exists and starts with the GGUF magic bytes."""
    model = Path(path)
    if not model.is_file():
        logger.warning(
            "  %-30s  NOT FOUND (download a GGUF export, e.g. %s)",
            str(model), DEFAULT_MODEL,
        )
        return False
    with open(model, "rb") as f:
        magic = f.read(4)
    if magic != GGUF_MAGIC:
        logger.warning("  %-30s  not a GGUF file (magic=%r)", str(model), magic)
        return False
    size_mb = model.stat().st_size / (1024 * 1024)
    logger.info("  %-30s  %.1f MB", str(model), size_mb)
    return True


def main() -> None:
    parser = argparse.ArgumentParser(description="Verify the embedding preprocessor setup")
    parser.add_argument("--model", default=DEFAULT_MODEL, help="Path to the GGUF model")
    args = parser.parse_args()

    logger.info("=" * 60)
    logger.info("Document Embedding Preprocessor -- Setup Verification")
    logger.info("=" * 60)

    all_ok = True

    logger.info("\n[1/3] Python version")
    all_ok &= check_python_version()

    logger.info("\n[2/3] Python packages")
    for module, display, required in REQUIRED_PACKAGES:
        all_ok &= check_package(module, display, required)

    logger.info("\n[3/3] Encoder model")
    all_ok &= check_model_file(args.model)

    logger.info("\n" + "=" * 60)
    if all_ok:
        logger.info("All required checks PASSED.")
    else:
        logger.error("Some checks FAILED.  Fix the issues above and re-run.")
    logger.info("=" * 60)

    sys.exit(0 if all_ok else 1)


if __name__ == "__main__":
    main()
