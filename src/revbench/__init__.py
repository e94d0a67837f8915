"""revbench: benchmark jobs against historical revisions of a git tree.

Resolves dates to commits, checks them out, runs configured jobs under
GNU ``time -v`` and stores the decoded reports in SQLite.
"""

__version__ = "0.1.0"
