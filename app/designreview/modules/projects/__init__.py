"""
Project registry.

A project is the ownership boundary for files, feedback and messages:
- exactly one client owns it (denormalized name/email captured at creation)
- status: awaiting_feedback -> feedback_received -> in_progress -> completed (not enforced)
- activity is an append-only log, one row per entry
"""
