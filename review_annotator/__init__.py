"""
Review annotator package.

This package contains the citation engine of an academic peer-review
platform: selection capture, markup-lite projection and highlight
injection, together with the SQLAlchemy citation store, the FastAPI
service and a Streamlit reviewer interface.
"""
