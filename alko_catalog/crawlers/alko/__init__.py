"""alko.fi scraping: session-managed browser + pure HTML parsing."""
