"""
Todo notifications.

State-scoped, priority-ranked todo queue for an issue/project collaboration
platform: todos are created for a user on a target (issue, merge request or
commit), move one way from pending to done, and are listed by recency or by
label priority.
"""

__version__ = "0.1.0"
