"""
Expense Capture - Source Package

Turns bank SMS text and OCR text from payment-app screenshots into
structured expense records, and reconciles those records as they
arrive on the capture screen.

DESIGN PRINCIPLES:
1. Extractors suggest, the user confirms, the validator gates the save
2. Strict parsing - no silent coercion of model output
3. Every capture session terminates, one way or another
4. Channels are read once and cleared
5. LLM providers are swappable by configuration
"""

__version__ = "1.0.0"
__author__ = "Expense Capture Team"
