"""shipkit

Contract package for the shipline orchestrator.

It owns the pieces every other layer agrees on:

* the error taxonomy (:mod:`shipkit.errors`)
* filesystem writers for run artifacts (:mod:`shipkit.io`)

``shipkit`` must not import from ``tools``, ``shipline`` or ``cli``. The
entrypoints and adapters depend on it, never the other way round.
"""

from __future__ import annotations
