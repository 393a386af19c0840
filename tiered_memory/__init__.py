"""
Tiered Memory Pipeline

Extracts importance-ranked memories from conversation turns, keeps them in a
short-term context tier and a long-term searchable archive, and ranks them
for retrieval with lexical full-text relevance.
"""

__version__ = "1.0.0"
__author__ = "Memory Pipeline Team"
__description__ = "Tiered conversational memory pipeline"
