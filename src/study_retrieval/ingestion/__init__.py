"""
Ingestion — text chunking, embedding and indexing into the vector store.

This module turns a document's extracted text into sentence-aligned
chunks, embeds each chunk and hands the vectors to the retrieval
gateway for storage.
"""
