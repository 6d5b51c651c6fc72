"""Core data types and exceptions shared by every stage."""
