"""specqa - turns EARS-style acceptance criteria into browser checks.

Reads specification folders, generates Playwright test scripts, runs their
step plans through the Playwright MCP server and writes a markdown summary.
"""

__version__ = "0.1.0"
