"""
WinSetupKit - unattended application installs for fresh Windows hosts.

Installs a catalog of applications through winget where the host supports
it, and by direct vendor download otherwise, recording every step so an
interrupted run can be resumed.
"""

__version__ = "0.1.0"
