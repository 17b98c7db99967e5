"""
Embeddings subpackage -- text-to-vector encoding.

    TextEncoder      -- one model + one context, ``encode(text) -> vector``
    LlamaCppBackend  -- the llama.cpp calls the encoder is built on
"""

from docembed.embeddings.encoder import TextEncoder
from docembed.embeddings.llama_backend import LlamaCppBackend, init_backend
