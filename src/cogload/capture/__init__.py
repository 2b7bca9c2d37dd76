"""Live browser capture through Playwright."""
