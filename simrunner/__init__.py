"""Browser end-to-end runner: YAML scenarios executed through Playwright."""

__version__ = "0.1.0"
