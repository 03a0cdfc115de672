# Sphinx configuration for the timetable_csp documentation.

import sys
from pathlib import Path
import tomllib

ROOT = Path(__file__).parent.parent

# autodoc imports timetable_csp from the source tree
sys.path.insert(0, str(ROOT))

with open(ROOT / "pyproject.toml", "rb") as f:
    metadata = tomllib.load(f)["project"]

project = metadata["name"]
author = metadata["authors"][0]["name"]
release = metadata["version"]
version = ".".join(release.split(".")[:2])
copyright = f"2026, {author}"

extensions = [
    "sphinx.ext.autodoc",
    "sphinx.ext.napoleon",
    "myst_parser",
]

source_suffix = {
    ".rst": "restructuredtext",
    ".md": "markdown",
}
master_doc = "index"
exclude_patterns = ["_build"]

napoleon_google_docstring = True
napoleon_numpy_docstring = False

html_theme = "furo"
html_title = f"{project} {release}"

autodoc_member_order = "bysource"
autodoc_typehints = "description"
