"""offcron - run scheduled hooks out of band from the process that schedules them."""

__version__ = "0.1.0"
