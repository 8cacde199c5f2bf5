"""
Script: cloud_build_tools package
What: Holds Python workflow helpers for tagging and building container images.
Doing: Groups CLI entrypoints, tag formatting, and Cloud Build submission in one importable package.
Why: Keeps workflow logic readable and testable instead of spreading it across shell steps.
Goal: Provide a clear, maintainable home for image tag and remote build logic.
"""
