"""Lead scraper core: job store, pacing, readiness waits and CSV export."""
