from collections import Counter
from pathlib import Path

from filelens_core.errors import DuplicateFileError, FileTooLargeError, UnsupportedFileError
from filelens_core.models import CodeFile

LANGUAGE_MAP = {
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "py": "python",
    "java": "java",
    "cs": "csharp",
    "go": "go",
    "rs": "rust",
    "rb": "ruby",
    "html": "html",
    "css": "css",
    "sh": "shell",
    "sql": "sql",
    "json": "json",
    "md": "markdown",
    "txt": "plaintext",
}

SUPPORTED_LANGUAGES = [
    "javascript",
    "typescript",
    "python",
    "java",
    "csharp",
    "go",
    "rust",
    "ruby",
    "html",
    "css",
    "shell",
    "sql",
    "json",
    "markdown",
    "plaintext",
]

DEFAULT_LANGUAGE = SUPPORTED_LANGUAGES[0]
SUPPORTED_EXTENSIONS = frozenset(LANGUAGE_MAP)
MAX_FILE_SIZE = 1024 * 1024  # 1 MiB

PASTED_FILE_STEM = "pasted_code"


def _extension(file_name: str) -> str:
    return file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""


def language_for(file_name: str) -> str | None:
    return LANGUAGE_MAP.get(_extension(file_name))


def is_supported_file(file_name: str) -> bool:
    return _extension(file_name) in SUPPORTED_EXTENSIONS


def load_code_file(path: str | Path) -> CodeFile:
    """Read a source file from disk, enforcing the extension and size limits.

    Both checks run before the content is read, so an oversized or
    unsupported file never reaches the orchestrator.
    """
    path = Path(path)
    if not is_supported_file(path.name):
        raise UnsupportedFileError(
            f"Unsupported file type: {path.name}. Supported extensions: {', '.join(sorted(SUPPORTED_EXTENSIONS))}"
        )
    size = path.stat().st_size
    if size > MAX_FILE_SIZE:
        raise FileTooLargeError(f"{path.name} is {size} bytes; the limit is {MAX_FILE_SIZE} bytes (1 MiB).")
    content = path.read_bytes().decode("utf-8", errors="replace")
    return CodeFile(name=path.name, language=language_for(path.name), content=content)


def check_paste_size(content: str) -> None:
    """Reject a pasted buffer larger than a file would be allowed to be."""
    size = len(content.encode("utf-8", errors="replace"))
    if size > MAX_FILE_SIZE:
        raise FileTooLargeError(f"Pasted code is {size} bytes; the limit is {MAX_FILE_SIZE} bytes (1 MiB).")


def pasted_file(content: str, language: str = DEFAULT_LANGUAGE) -> CodeFile:
    """Wrap a pasted buffer as a CodeFile named after the language's extension."""
    ext = next((e for e, lang in LANGUAGE_MAP.items() if lang == language), "txt")
    return CodeFile(name=f"{PASTED_FILE_STEM}.{ext}", language=language, content=content)


def is_pasted(file: CodeFile) -> bool:
    return file.name.startswith(f"{PASTED_FILE_STEM}.")


def ensure_unique_names(files: list[CodeFile]) -> None:
    counts = Counter(f.name for f in files)
    for f in files:
        if counts[f.name] > 1:
            raise DuplicateFileError(f.name)
