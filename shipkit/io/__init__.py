"""shipkit.io

Filesystem helpers shared by the CLI, the run counter and the manifest writer.
"""

from .fs import read_json, write_json_atomic, write_text_atomic

__all__ = [
    "read_json",
    "write_json_atomic",
    "write_text_atomic",
]
