import codecs
import contextlib
import logging
import os
import shutil
import tempfile
from typing import NamedTuple

import chardet

from core.errors import FileReadError, FileWriteError

logger = logging.getLogger(__name__)

# A NUL byte within this many leading bytes marks a file as binary
BINARY_SNIFF_BYTES = 8000

# chardet guesses below this confidence are ignored
MIN_DETECTION_CONFIDENCE = 0.5

# Decodes any byte sequence, so an undetectable file can still be searched
FALLBACK_ENCODING = "latin-1"

# Explicit byte order: the plain utf-16/utf-32 codecs write native order
ENDIAN_BOMS = {
    "utf-32-le": codecs.BOM_UTF32_LE,
    "utf-32-be": codecs.BOM_UTF32_BE,
    "utf-16-le": codecs.BOM_UTF16_LE,
    "utf-16-be": codecs.BOM_UTF16_BE,
}

# Longest BOMs first: the UTF-32-LE BOM starts with the UTF-16-LE one
BOM_ENCODINGS = [
    (codecs.BOM_UTF32_LE, "utf-32-le"),
    (codecs.BOM_UTF32_BE, "utf-32-be"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16-le"),
    (codecs.BOM_UTF16_BE, "utf-16-be"),
]

class TextFile(NamedTuple):
    content: str
    encoding: str

def _describe_os_error(e: OSError) -> str:
    return e.strerror or str(e)

def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as file:
        return file.read()

def encoding_from_bom(raw: bytes) -> str | None:
    for bom, encoding in BOM_ENCODINGS:
        if raw.startswith(bom):
            return encoding

    return None

def is_binary(raw: bytes) -> bool:
    return b"\x00" in raw[:BINARY_SNIFF_BYTES]

def detect_encoding(raw: bytes) -> str:
    bom_encoding = encoding_from_bom(raw)
    if bom_encoding:
        return bom_encoding

    try:
        raw.decode("utf-8")
    except UnicodeDecodeError:
        pass
    else:
        return "utf-8"

    detected = chardet.detect(raw)
    encoding = detected.get("encoding")
    if encoding and (detected.get("confidence") or 0) >= MIN_DETECTION_CONFIDENCE:
        return encoding

    logger.debug("Encoding not detected (%s), falling back to %s", detected, FALLBACK_ENCODING)
    return FALLBACK_ENCODING

def read_text_file(path: str) -> TextFile:
    """
    Read a whole file as text, keeping its line endings untouched.

    Raises:
        FileReadError if the file cannot be opened, looks binary,
        or does not decode with the detected encoding.
    """
    try:
        raw = _read_bytes(path)
    except OSError as e:
        raise FileReadError(_describe_os_error(e)) from e

    # UTF-16/32 text is full of NUL bytes, only sniff when there is no BOM
    if encoding_from_bom(raw) is None and is_binary(raw):
        raise FileReadError("Binary file")

    encoding = detect_encoding(raw)

    bom = ENDIAN_BOMS.get(encoding, b"")
    if raw.startswith(bom):
        raw = raw[len(bom):]

    try:
        content = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError) as e:
        raise FileReadError(f"Cannot decode file as {encoding}: {e}") from e

    return TextFile(content=content, encoding=encoding)

def write_text_file(path: str, content: str, encoding: str) -> None:
    """
    Replace the file's content atomically.

    The text is written to a temp file next to the original, which takes the
    original's permission bits and is then moved over it with os.replace.
    A symlink is followed, so the file it points to is rewritten and the link
    itself stays in place. On any failure the original file is left as it was.
    """
    path = os.path.realpath(path)
    directory = os.path.dirname(path)

    try:
        data = ENDIAN_BOMS.get(encoding, b"") + content.encode(encoding)
    except (UnicodeEncodeError, LookupError) as e:
        raise FileWriteError(f"Cannot encode new content as {encoding}: {e}") from e

    try:
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=".fnr-", suffix=".tmp")
    except OSError as e:
        raise FileWriteError(_describe_os_error(e)) from e

    try:
        with os.fdopen(fd, "wb") as temp_file:
            temp_file.write(data)

        shutil.copymode(path, temp_path)
        os.replace(temp_path, path)
    except OSError as e:
        with contextlib.suppress(OSError):
            os.remove(temp_path)

        raise FileWriteError(_describe_os_error(e)) from e
