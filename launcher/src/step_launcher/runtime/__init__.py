"""Path planning, placeholder resolution and storage addressing for a launch."""

from step_launcher.runtime.artifacts import build_local_artifact_path
from step_launcher.runtime.placeholders import Placeholder, PlaceholderMap, PlaceholderResolver
from step_launcher.runtime.storage_root import StorageRoot

__all__ = [
    "build_local_artifact_path",
    "Placeholder",
    "PlaceholderMap",
    "PlaceholderResolver",
    "StorageRoot",
]
