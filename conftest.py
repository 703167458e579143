"""Root conftest, loaded before any test module imports staticpress."""

import os

# Rich honours FORCE_COLOR (set by most CI runners) and would wrap CLI output
# in ANSI escapes, breaking plain-substring checks on build summaries.
os.environ.pop("FORCE_COLOR", None)
os.environ["NO_COLOR"] = "1"
