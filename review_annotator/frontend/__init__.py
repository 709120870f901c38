"""HTML rendering, Streamlit UI and CLI launcher for the review annotator."""
