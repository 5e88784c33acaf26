"""SQL dump text processing: decompression, validation, table prefix handling.

Single-responsibility: files and text only. Callers run the database client.

Legacy dumps from shared hosting often carry a table prefix on every table
(`wk_page`, `wk_revision`, ...). detect_prefix finds the leading substring
shared by the most tables and strip_prefix_file rewrites a working copy
without it.
"""

from __future__ import annotations

import bz2
import gzip
import logging
import lzma
import re
import shutil
from collections import Counter
from pathlib import Path
from typing import IO, Callable, Iterable, Optional

from config import PREFIX_MAX_LEN, PREFIX_MIN_LEN, PREFIX_MIN_TABLES
from modules.utils import log

CREATE_TABLE_RE = re.compile(r"CREATE TABLE `([^`]+)`")
DUMP_KEYWORDS = ("CREATE TABLE", "INSERT INTO", "DROP TABLE")
DEFINER_RE = re.compile(r"DEFINER=[^@\n]*@\S* ")

_OPENERS: dict[str, Callable[..., IO[bytes]]] = {
    "gzip": gzip.open,
    "bzip2": bz2.open,
    "xz": lzma.open,
    "none": open,
}


def detect_compression(path: Path | str) -> str:
    name = str(path).lower()
    if name.endswith((".gz", ".gzip")):
        return "gzip"
    if name.endswith(".bz2"):
        return "bzip2"
    if name.endswith(".xz"):
        return "xz"
    return "none"


def decompress_to(src: Path, dest: Path, compression: str) -> bool:
    opener = _OPENERS.get(compression)
    if opener is None:
        logging.error("Unsupported compression format: %s", compression)
        return False
    try:
        with opener(src, "rb") as fin, open(dest, "wb") as fout:
            shutil.copyfileobj(fin, fout, length=1024 * 1024)
    except (OSError, EOFError, lzma.LZMAError) as err:
        logging.error("Could not decompress %s (%s): %s", src, compression, err)
        return False
    log(f"PASS: Decompressed {src} ({compression}) -> {dest}")
    return True


def _iter_lines(path: Path) -> Iterable[str]:
    with open(path, "r", encoding="utf-8", errors="surrogateescape", newline="") as fh:
        yield from fh


def validate_sql(path: Path) -> bool:
    if not path.is_file():
        logging.error("SQL file is not accessible: %s", path)
        return False
    try:
        for line in _iter_lines(path):
            if any(k in line for k in DUMP_KEYWORDS):
                log(f"PASS: SQL dump validation passed for {path}")
                return True
    except OSError as err:
        logging.error("SQL file is not readable: %s (%s)", path, err)
        return False
    logging.error("File does not appear to contain SQL dump content: %s", path)
    return False


def extract_table_names(lines: Iterable[str]) -> list[str]:
    seen: dict[str, None] = {}
    for line in lines:
        for name in CREATE_TABLE_RE.findall(line):
            seen.setdefault(name, None)
    return list(seen)


def detect_prefix(
    names: Iterable[str],
    min_tables: int = PREFIX_MIN_TABLES,
    min_len: int = PREFIX_MIN_LEN,
    max_len: int = PREFIX_MAX_LEN,
) -> Optional[str]:
    """Return the table prefix shared by at least min_tables names, or None.

    Candidates are the leading substrings of each name with a length in
    [min_len, max_len] that is strictly shorter than the name itself. The
    candidate matched by the most names wins; ties go to the longer prefix,
    then to the lexicographically first one.
    """
    tables = list(dict.fromkeys(names))
    if not tables:
        return None

    candidates: set[str] = set()
    for table in tables:
        for length in range(min_len, min(max_len, len(table) - 1) + 1):
            candidates.add(table[:length])

    counts = Counter()
    for prefix in candidates:
        counts[prefix] = sum(1 for t in tables if t.startswith(prefix))

    best = ""
    best_count = 0
    for prefix in sorted(candidates):
        count = counts[prefix]
        if count < min_tables:
            continue
        if count > best_count or (count == best_count and len(prefix) > len(best)):
            best = prefix
            best_count = count

    if not best:
        return None
    log(f"PASS: Detected prefix '{best}' (appears in {best_count} tables)")
    return best


def detect_prefix_in_file(path: Path) -> Optional[str]:
    names = extract_table_names(_iter_lines(path))
    if not names:
        logging.info("No tables found in dump %s", path)
        return None
    log(f"Found {len(names)} tables in {path}")
    prefix = detect_prefix(names)
    if prefix is None:
        logging.info(
            "No consistent table prefix detected (need %d+ tables with same prefix)",
            PREFIX_MIN_TABLES,
        )
    return prefix


def strip_prefix_text(text: str, prefix: str) -> str:
    """Drop prefix right after each backtick and remove DEFINER clauses.

    Only the occurrence directly after the backtick is removed, so
    `ababfoo` with prefix "ab" becomes `abfoo`, not `foo`.
    """
    if prefix:
        text = text.replace("`" + prefix, "`")
    return DEFINER_RE.sub("", text)


def strip_prefix_file(src: Path, dest: Path, prefix: str) -> bool:
    try:
        with open(dest, "w", encoding="utf-8", errors="surrogateescape", newline="") as fout:
            for line in _iter_lines(src):
                fout.write(strip_prefix_text(line, prefix))
    except OSError as err:
        logging.error("Failed to remove prefix from dump %s: %s", src, err)
        return False
    log(f"PASS: Removed prefix '{prefix}' and DEFINER clauses -> {dest}")
    return True
