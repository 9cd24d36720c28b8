"""
Background workers for non-blocking synchronization.

Provides:
- thread_pool: a bounded thread pool with a join barrier, used by
  the action executor
- sync_worker: a QObject worker that runs a full sync and reports
  through Qt signals

Import from the submodules directly; the executor depends on
thread_pool, and sync_worker depends on the executor.
"""
