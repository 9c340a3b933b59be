"""
Automates variant approval and ClinVar data extraction on the ClinGen Variant Curation Interface.
"""

__version__ = "0.1.0"
