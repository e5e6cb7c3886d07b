from buildbump.common.config import BumpPaths, PublishConfig
from buildbump.common.counter import parse_version_counter, read_version_counter, write_version_counter

__all__ = [
    "BumpPaths",
    "PublishConfig",
    "parse_version_counter",
    "read_version_counter",
    "write_version_counter",
]
