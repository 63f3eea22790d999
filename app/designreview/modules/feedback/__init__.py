"""
Feedback ledger.

Comments anchored to a file, optionally pinned to a region (x, y, width, height).
Statuses: open / resolved / rejected. Only admins may resolve or reopen.
"""
