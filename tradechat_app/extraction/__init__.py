"""
Trade call extraction module.

Pulls the structured trade recommendation out of a finished response and
strips the corresponding prose when a card is shown instead.
"""
