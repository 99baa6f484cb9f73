"""Document text extraction — thin wrappers around LangChain document loaders."""

from __future__ import annotations

from pathlib import Path

from langchain_community.document_loaders import PyPDFLoader, TextLoader

_TEXT_SUFFIXES = {".txt", ".md"}


def load_pdf_text(path: str | Path) -> str:
    """Extract the text of a PDF, one page per line block."""
    pages = PyPDFLoader(str(path)).load()
    return "\n".join(page.page_content for page in pages)


def load_text_file(path: str | Path) -> str:
    """Load a plain-text or Markdown file."""
    docs = TextLoader(str(path), encoding="utf-8").load()
    return "\n".join(doc.page_content for doc in docs)


def load_document_text(path: str | Path) -> str:
    """Extract text from *path*, picking the loader from its suffix.

    Raises
    ------
    FileNotFoundError
        When *path* does not exist.
    ValueError
        For unsupported file types.
    """
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(path)
    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return load_pdf_text(path)
    if suffix in _TEXT_SUFFIXES:
        return load_text_file(path)
    raise ValueError(f"Unsupported document type: {suffix or path.name!r}")
