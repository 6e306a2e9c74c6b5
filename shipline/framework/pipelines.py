"""shipline.framework.pipelines

Pipeline definitions (ordered stage lists).

Order is part of the contract: predicates may only refer to stages that come
earlier in the same list.
"""

from __future__ import annotations

from typing import Dict, List

DEFAULT_PIPELINE = "default"

PIPELINES: Dict[str, List[str]] = {
    DEFAULT_PIPELINE: [
        "clean-workspace",
        "checkout",
        "lint",
        "test",
        "build-image",
        "test-image",
        "security-scan",
        "push",
        "deploy",
    ],
}
