"""
ZZP Assistant

Conversational drafting engine for freelancer bookkeeping: clients,
invoices (facturen), quotations (offertes) and expenses (uitgaven) built
from loosely formatted Dutch or English chat messages.
"""

__version__ = "0.1.0"
