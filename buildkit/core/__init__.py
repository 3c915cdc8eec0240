"""Configuration, logging and the error hierarchy."""
