"""Error type shared by every stage of the embedding pipeline."""


class EmbeddingError(RuntimeError):
    """
    Raised for any failure in the pipeline: file I/O, JSON parsing,
    missing fields, model loading, context creation, tokenization,
    inference, or a missing embedding.

    The message is human readable and is printed as ``Error: <message>``
    by the command line entry point.
    """
