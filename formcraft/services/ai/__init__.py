"""
AI Services Module for formcraft

This module provides the embedding, context and schema generation
services, and the engine that sequences them.
"""
