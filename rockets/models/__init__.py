"""Wire models for the rockets API."""
