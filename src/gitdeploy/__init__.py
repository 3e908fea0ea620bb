"""gitdeploy - deploy applications by tagging releases in a git checkout."""

__version__ = "0.1.0"
