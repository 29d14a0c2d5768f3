"""Configuration, credential and validation primitives."""
