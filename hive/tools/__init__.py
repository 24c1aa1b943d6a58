"""Filesystem access for build operations.

Exports:
    ProjectFiles: Project-rooted file access with path traversal protection.
"""

from hive.tools.project_files import ProjectFiles as ProjectFiles
