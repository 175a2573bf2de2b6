import threading
import time
from pathlib import Path
from typing import Callable, Optional
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler

class TargetFileHandler(FileSystemEventHandler):
    """
    Listens for events on one file inside a watched directory and maps them to
    `on_change` / `on_delete` callbacks. Renames onto the target count as a
    change (editors that save atomically), renames away from it as a delete.
    """
    def __init__(self, target_file: str, on_change: Callable[[str], None],
                 on_delete: Optional[Callable[[str], None]] = None, debounce_seconds: float = 0.0):
        self.target_file = str(Path(target_file).resolve())
        self.on_change = on_change
        self.on_delete = on_delete
        self.last_triggered = 0.0
        self.debounce_seconds = debounce_seconds

    def _is_target(self, path) -> bool:
        if isinstance(path, bytes):
            path = path.decode()
        return str(Path(path).resolve()) == self.target_file

    def _changed(self):
        now = time.time()
        if now - self.last_triggered >= self.debounce_seconds:
            self.last_triggered = now
            self.on_change(self.target_file)

    def _deleted(self):
        if self.on_delete:
            self.on_delete(self.target_file)

    def on_modified(self, event):
        if not event.is_directory and self._is_target(event.src_path):
            self._changed()

    def on_created(self, event):
        if not event.is_directory and self._is_target(event.src_path):
            self._changed()

    def on_deleted(self, event):
        if not event.is_directory and self._is_target(event.src_path):
            self._deleted()

    def on_moved(self, event):
        if event.is_directory:
            return
        if self._is_target(event.dest_path):
            self._changed()
        elif self._is_target(event.src_path):
            self._deleted()

class FileWatcher:
    """
    Manages the watchdog observer thread.
    """
    def __init__(self):
        self.observer = Observer()
        self.watch = None

    def start_watching(self, file_path: str, on_change: Callable[[str], None],
                       on_delete: Optional[Callable[[str], None]] = None, debounce_seconds: float = 0.0):
        """
        Starts a background thread watching the directory of the file_path.
        """
        path = Path(file_path).resolve()
        if not path.exists():
            raise FileNotFoundError(f"Cannot watch non-existent file: {file_path}")

        handler = TargetFileHandler(str(path), on_change, on_delete, debounce_seconds)
        # Watch the parent directory
        self.watch = self.observer.schedule(handler, str(path.parent), recursive=False)
        self.observer.start()

    def stop_watching(self):
        if self.observer.is_alive():
            self.observer.stop()
            # A delete callback may stop the watcher from the observer thread itself
            if threading.current_thread() is not self.observer:
                self.observer.join()
