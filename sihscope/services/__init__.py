"""SIH Scope service layer: scraping pipeline and problem storage."""
