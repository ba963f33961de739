# Scratch file management and progress store

from .file_manager import FileManager
from .progress_store import MemoryProgressStore, ProgressStore, ProgressStoreError, RedisProgressStore

__all__ = ['FileManager', 'MemoryProgressStore', 'ProgressStore', 'ProgressStoreError', 'RedisProgressStore']
