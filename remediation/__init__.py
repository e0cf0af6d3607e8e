"""
PDF accessibility remediation.

Splits documents into chunks, tags and enriches them in parallel, merges
them back and verifies compliance before and after.
"""
