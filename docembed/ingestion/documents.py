"""
Document I/O
=============
Reads the input collection and writes the embedded collection.

Input (``documents.json``)::

    [
        {"id": 1, "text": "First document ..."},
        {"id": 2, "text": "Second document ...", "source": "ignored"}
    ]

Output (``preprocessed_documents.json``, 2-space indent)::

    [
      {
        "id": 1,
        "text": "First document ...",
        "embedding": [0.0123, -0.0456, ...]
      }
    ]

Fields are checked lazily: ``read_documents`` only requires a JSON array,
and ``extract_fields`` validates ``id`` / ``text`` one record at a time as
the pipeline reaches it.  ``id`` values are not checked for uniqueness and
empty ``text`` is accepted.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from docembed.errors import EmbeddingError

logger = logging.getLogger(__name__)


@dataclass
class EmbeddedDocument:
    """
    One output record.

    Attributes:
        id        : identifier copied from the input record
        text      : original text, unchanged
        embedding : model output, length == encoder embedding_dim
    """
    id: int
    text: str
    embedding: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


def read_documents(path: str) -> List[Any]:
    """
    Load the whole input file as one JSON array.

    Raises:
        EmbeddingError if the file cannot be opened, is not valid JSON,
        or does not hold an array at the top level.
    """
    try:
        with open(path, "rb") as f:
            raw = f.read()
    except OSError as exc:
        raise EmbeddingError(f"Could not open {path}") from exc

    try:
        # utf-8-sig drops a leading byte-order mark if there is one.
        data = json.loads(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise EmbeddingError(f"Failed to parse {path}: {exc}") from exc

    if not isinstance(data, list):
        raise EmbeddingError(
            f"Expected a JSON array in {path}, got {type(data).__name__}"
        )
    logger.debug("Read %d records from %s", len(data), path)
    return data


def extract_fields(doc: Any, index: int) -> Tuple[int, str]:
    """
    Pull ``(id, text)`` out of one input record.

    Raises:
        EmbeddingError if the record is not an object, or ``text`` is not a
        string (or holds characters UTF-8 cannot encode), or ``id`` is not
        an integer.
    """
    if not isinstance(doc, dict):
        raise EmbeddingError(
            f"Document {index}: expected an object, got {type(doc).__name__}"
        )
    if "text" not in doc:
        raise EmbeddingError(f"Document {index}: missing 'text'")
    text = doc["text"]
    if not isinstance(text, str):
        raise EmbeddingError(
            f"Document {index}: 'text' must be a string, got {type(text).__name__}"
        )
    try:
        text.encode("utf-8")
    except UnicodeEncodeError as exc:
        # JSON escapes can smuggle in lone surrogates.
        raise EmbeddingError(
            f"Document {index}: 'text' is not valid UTF-8 ({exc.reason})"
        ) from exc
    if "id" not in doc:
        raise EmbeddingError(f"Document {index}: missing 'id'")
    doc_id = doc["id"]
    # bool is an int subclass; JSON true/false is not a valid id.
    if isinstance(doc_id, bool) or not isinstance(doc_id, int):
        raise EmbeddingError(
            f"Document {index}: 'id' must be an integer, got {type(doc_id).__name__}"
        )
    return doc_id, text


def write_documents(path: str, records: Sequence[EmbeddedDocument]) -> Path:
    """
    Serialise ``records`` as pretty-printed JSON and write the file in one go.

    Raises:
        EmbeddingError if the output file cannot be opened for writing.
    """
    payload = json.dumps([r.to_dict() for r in records], indent=2, ensure_ascii=False)
    out = Path(path)
    try:
        with open(out, "w", encoding="utf-8") as f:
            f.write(payload)
    except OSError as exc:
        raise EmbeddingError(f"Could not open {path} for writing") from exc
    logger.debug("Wrote %d records (%d bytes) to %s", len(records), len(payload), out)
    return out
