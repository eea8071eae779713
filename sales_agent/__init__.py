"""
Conversational insurance sales agent.

Quotes premiums from data-driven pricing rules, converses with customers over
WhatsApp through a tool-calling dialogue model, and turns confirmed payments
into delivered insurance certificates.
"""

__version__ = "1.0.0"
