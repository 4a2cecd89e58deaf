"""
M365 Group Settings
===================
Administers the tenant-wide Microsoft 365 group settings object
(directory settings from the "Group.Unified" template) through Microsoft Graph.

Every change is a read-modify-write of the whole settings object.
Concurrent changes from other admins are overwritten (last write wins).
"""

__version__ = "1.0.0"
__author__ = "M365 Group Settings"
