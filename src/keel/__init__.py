"""
Keel - single-instance guard and recurring task primitives.

- keel.core.guard: claim a token system-wide for the life of a process
- keel.core.scheduling: recurring, non-overlapping callbacks on an event loop
- keel.cli: ``keel`` command line front end
"""

__version__ = "0.1.0"

from keel.core import *  # noqa
