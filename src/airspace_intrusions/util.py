import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

def safe_path(relative_path):
    """Return an absolute path to a file in the same directory as this module.
    Removes dependency on the current working directory."""

    return os.path.abspath(os.path.join(os.path.dirname(__file__),
                                        relative_path))

@contextmanager
def atomic_write(final_path):
    """Yield a temp path next to final_path; move it into place on success.

    If the body raises, the temp file is removed and final_path is left
    untouched, so readers never see a truncated file."""
    final_path = Path(final_path)
    final_path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=final_path.parent,
                                    prefix="." + final_path.stem + "-",
                                    suffix=final_path.suffix + ".tmp")
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, final_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()
