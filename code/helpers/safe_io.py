# helpers/safe_io.py — Atomic writers for planner outputs (CSV, TOML, text).
#
# Each writer fills a temp file next to the target and os.replace()s it into
# place, so readers never see a half-written plan.

from __future__ import annotations

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator, IO

import pandas as pd

_FORMULA_PREFIXES = ("=", "+", "-", "@", "\t", "\r")


def _sanitize_csv_value(v):
    """Quote-prefix strings a spreadsheet would evaluate as a formula."""
    if isinstance(v, str) and v and v[0] in _FORMULA_PREFIXES:
        return "'" + v
    return v


@contextmanager
def _atomic(path: Path | str, mode: str = "w") -> Iterator[IO]:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        if "b" in mode:
            f = os.fdopen(fd, mode)
        else:
            f = os.fdopen(fd, mode, encoding="utf-8", newline="")
        with f:
            yield f
        os.replace(tmp, str(path))
    except BaseException:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


def safe_write_csv(df: pd.DataFrame, path: Path | str, *, sanitize: bool = True, **to_csv_kwargs) -> None:
    """Write *df* to *path* atomically; text cells are formula-sanitized unless *sanitize* is off."""
    to_csv_kwargs.setdefault("index", False)
    if sanitize:
        obj_cols = df.select_dtypes(include=["object"]).columns
        if len(obj_cols):
            df = df.copy()
            df[obj_cols] = df[obj_cols].map(_sanitize_csv_value)
    with _atomic(path) as f:
        df.to_csv(f, **to_csv_kwargs)


def safe_write_toml(cfg: dict, path: Path | str) -> None:
    import tomli_w

    with _atomic(path, "wb") as f:
        tomli_w.dump(cfg, f)


def safe_write_text(lines: Iterable[str], path: Path | str) -> None:
    """One entry per line, trailing whitespace stripped."""
    with _atomic(path) as f:
        for ln in lines:
            f.write(ln.rstrip() + "\n")
