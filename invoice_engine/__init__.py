"""
Invoice Engine.

Turns noisy invoice text (OCR transcripts of photos and scans, or text
pulled straight out of PDFs) into structured, validated invoice data with
an arbitrated grand total and a calibrated confidence score.
"""

__version__ = "1.0.0"
