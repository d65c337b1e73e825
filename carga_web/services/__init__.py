"""Application services that need the Flask app context."""
