"""Global pytest configuration."""

import os

# Keep the external planner off for tests before any settings are loaded
os.environ.setdefault("PLANNER_ENABLED", "false")
os.environ.setdefault("OPENAI_API_KEY", "")
