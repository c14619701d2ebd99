"""Wire format, queue, worker pool and poll loop for a threaded RPC system, and a file-system coherence checker."""

__version__ = "0.1.0"

__all__ = [
    "debuglog",
    "fifo",
    "fscheck",
    "marshall",
    "netutil",
    "pollmgr",
    "thr_pool",
]