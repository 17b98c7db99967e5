"""
Document Embedding Preprocessor -- Command Line Interface
===========================================================
Entry point for all user-facing operations.

Commands:
  embed    -- Encode every document in the input JSON and write the results
  inspect  -- Load the model and report its embedding dimension

Usage examples:
  python cli.py
  python cli.py embed --input docs.json --output embedded.json
  python cli.py -v embed --model models/bge-base-en-v1.5-f32.gguf
  python cli.py inspect

Design notes:
  - Running without a command is the same as ``embed`` with defaults:
    documents.json -> preprocessed_documents.json using
    bge-base-en-v1.5-f32.gguf.
  - Defaults can be changed in configs/settings.yaml; flags win over it.
  - Every failure ends here: ``Error: <message>`` on stderr, exit code 1.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# ---------------------------------------------------------------------------
# Project root (resolve regardless of where the script is invoked from)
# ---------------------------------------------------------------------------
PROJECT_ROOT = Path(__file__).resolve().parent
sys.path.insert(0, str(PROJECT_ROOT))

from docembed.config import resolve_settings  # noqa: E402
from docembed.errors import EmbeddingError  # noqa: E402


def setup_logging(verbose: bool = False) -> None:
    """Configure root logger."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# ===================================================================
# Command handlers
# ===================================================================

def cmd_embed(args: argparse.Namespace) -> None:
    """
    Embed pipeline: read documents -> load model -> encode -> write JSON.
    """
    from docembed.pipeline import run_pipeline

    settings = resolve_settings(
        args.config,
        input_path=args.input,
        output_path=args.output,
        model_path=args.model,
    )
    logging.info("=== EMBED PIPELINE START (model=%s) ===", settings.model_path)
    run_pipeline(settings, report_performance=args.verbose)
    logging.info("=== EMBED PIPELINE COMPLETE ===")


def cmd_inspect(args: argparse.Namespace) -> None:
    """Load the model once and print what the pipeline would produce."""
    from docembed.embeddings.encoder import TextEncoder

    settings = resolve_settings(args.config, model_path=args.model)
    with TextEncoder(
        settings.model_path,
        n_ctx=settings.n_ctx,
        n_batch=settings.n_batch,
        expected_dim=settings.expected_dim,
    ) as encoder:
        print(f"\n{'='*60}")
        print(f"Model:              {settings.model_path}")
        print(f"Embedding dim:      {encoder.embedding_dim}")
        print(f"Expected dim:       {settings.expected_dim}")
        print(f"Encoder model:      {'yes' if encoder.has_encoder else 'no'}")
        print(f"Context / batch:    {settings.n_ctx} / {settings.n_batch} tokens")
        print(f"{'='*60}")


# ===================================================================
# Argument parser
# ===================================================================

def _add_common(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--model",
        type=str,
        default=None,
        help="Path to the GGUF encoder model",
    )
    p.add_argument(
        "--config",
        type=str,
        default=None,
        help="Settings YAML (default: configs/settings.yaml)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docembed",
        description=(
            "Convert a JSON document collection into dense embeddings "
            "using a GGUF text-encoder model on llama.cpp."
        ),
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging and print inference timings",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -- embed --
    p_embed = subparsers.add_parser(
        "embed",
        help="Encode documents and write them with their embeddings",
    )
    p_embed.add_argument(
        "--input",
        type=str,
        default=None,
        help="Input JSON array of {id, text} (default: documents.json)",
    )
    p_embed.add_argument(
        "--output",
        type=str,
        default=None,
        help="Output JSON path (default: preprocessed_documents.json)",
    )
    _add_common(p_embed)
    p_embed.set_defaults(func=cmd_embed)

    # -- inspect --
    p_inspect = subparsers.add_parser(
        "inspect",
        help="Load the model and show its embedding dimension",
    )
    _add_common(p_inspect)
    p_inspect.set_defaults(func=cmd_inspect)

    return parser


# ===================================================================
# Main entry point
# ===================================================================

def main(argv: Optional[List[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        # No command: run the embed pipeline with every default.
        extra = ["-v"] if args.verbose else []
        args = parser.parse_args(extra + ["embed"])

    setup_logging(verbose=args.verbose)

    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\nInterrupted by user.")
        sys.exit(130)
    except Exception as exc:
        logging.debug("Command failed", exc_info=True)
        if not isinstance(exc, EmbeddingError):
            logging.error("Unexpected %s", type(exc).__name__)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
