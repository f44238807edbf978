"""Command line interface for git-release-builds."""
