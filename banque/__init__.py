"""
banque - Credit-decision pipeline for the Banque (lender) space.

This package holds the dossier store, the profitability calculator, the
SmartScore risk engine and the committee report generator.

Modules:
    - core: settings, logging, exceptions, scoring constants and formatting
    - domain: pydantic models, lifecycle rules and pure calculators
    - application: store, workflow and report services
    - services: storage backends and document exporters
"""

__version__ = "1.0.0"
