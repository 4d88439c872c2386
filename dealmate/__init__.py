"""DealMate deal analysis service."""
