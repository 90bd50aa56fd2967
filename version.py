"""
Application version management.

Version format: MAJOR.MINOR.PATCH
- MAJOR: Breaking changes to the extension point contracts
- MINOR: New protections, backward compatible
- PATCH: Bug fixes and small improvements
"""

import os

__version__ = "1.1.0"

__build_date__ = "2026-10-19"


def get_version():
    """Get the current application version."""
    return __version__


def get_build_info():
    """Get complete build information."""
    return {
        'version': __version__,
        'build_date': __build_date__,
        'git_commit': os.environ.get('GIT_COMMIT', 'unknown'),
        'environment': os.environ.get('ENVIRONMENT', 'development')
    }
