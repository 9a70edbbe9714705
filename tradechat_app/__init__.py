"""
TradeChat App - Conversational trade-call response pipeline

Ingests a streamed model response, renders the constrained markdown dialect
the model is instructed to emit, extracts the structured trade call from the
finished text and projects price paths for the traded symbol.
"""

__version__ = "0.1.0"
__author__ = "TradeChat Team"
