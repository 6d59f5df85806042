"""File Sync: debounced directory-to-remote mirroring.

Watches a local folder tree for changes, batches the resulting events
and pushes them to a remote host with rsync over ssh.
"""

__version__ = "1.0.0"
__app_name__ = "File Sync"
