"""
Google Tag Manager admin audit: flags accounts with too few or too many admins,
exports them to a timestamped spreadsheet tab and emails a summary.
"""

__version__ = "1.0.0"
