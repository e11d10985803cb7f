from pathlib import Path

import pytest


def write(path: Path, text: str = "", data: bytes = None) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if data is not None:
        path.write_bytes(data)
    else:
        path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def docs(tmp_path):
    """Input tree: a.md at the root, sub/b.md and an asset next to it."""
    root = tmp_path / "docs"
    write(root / "a.md", "# Alpha\n\nFirst page.\n")
    write(root / "sub" / "b.md", "# Beta\n\n- one\n- two\n")
    write(root / "sub" / "logo.png", data=b"\x89PNG\r\n\x1a\n\x00\x01\x02")
    return root
