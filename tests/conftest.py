from __future__ import annotations

from typing import Optional

import pytest
from loguru import logger


def make_record(schema: Optional[str], payload: bytes, **fields: str) -> bytes:
    """Build a text-header record; newlines in values become continuation lines."""
    values = {"data_size": str(len(payload))}
    if schema is not None:
        values["format"] = schema
    values.update(fields)
    out = [b"WN\n"]
    for key, value in values.items():
        text = value.replace("\n", " \\\n")
        out.append(f"{key}={text}\n".encode("utf-8"))
    out.append(b"\x04\x1a")
    out.append(payload)
    return b"".join(out)


@pytest.fixture
def record():
    return make_record


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # cli.main() installs a sink on the captured stderr
    logger.remove()
    logger.disable("rrr")
