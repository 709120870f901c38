"""
Backend package for the review annotator.

Contains the citation engine (selection capture, projection, highlight
injection), the citation store, validators, import helpers and the
HTTP API.
"""
